"""Google Drive file operations signed by a credential lifecycle manager."""
