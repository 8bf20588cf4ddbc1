"""SQLite storage for hourly metric files, statistics and permanent users' events."""