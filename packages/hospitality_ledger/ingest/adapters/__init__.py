"""One module per supported bank or OTA export format."""
