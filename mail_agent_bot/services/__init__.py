"""Service layer: credentials, retries, remote agent client and the message relay."""
