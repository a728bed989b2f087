"""URL ingestion: platform detection, validation, product extraction and shortening."""
