"""In-memory per-hour statistics by service and by service and event data."""