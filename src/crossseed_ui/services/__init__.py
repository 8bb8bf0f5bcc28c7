"""Services: config file persistence, Prowlarr sync, daemon probing, connection tests, scheduling."""
