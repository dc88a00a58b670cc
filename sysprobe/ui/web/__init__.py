"""Web front end — Flask JSON API."""
