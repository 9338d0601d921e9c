# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (portal or Matrix passwords). Keep them in .env (local, gitignored).

Agent settings (api url, poll interval/jitter, notification switches) only seed
defaults: values saved with /settings live in the database and win.
"""

ENV_VARS = {
    # App / logging
    "SCHENGEN_APP_NAME": "App display name (default: schengen-agent).",
    "SCHENGEN_LOG_LEVEL": "Console logging level (default: INFO). The log file is always DEBUG.",
    # Paths (gitignored)
    "SCHENGEN_DATA_DIR": "Local data directory (default: .local/schengen).",
    "SCHENGEN_DB_PATH": "SQLite database path (default: <data_dir>/agent.sqlite3).",
    # Agent defaults
    "SCHENGEN_API_URL": "Check backend base URL (default: http://localhost:3000).",
    "SCHENGEN_POLL_INTERVAL": "Seconds between check cycles (default: 120).",
    "SCHENGEN_POLL_JITTER": "Random +/- seconds added to each interval (default: 30).",
    "SCHENGEN_DESKTOP_NOTIFY": "Push found slots to the Matrix room (true/false, default: false).",
    "SCHENGEN_SOUND_NOTIFY": "Ring the terminal bell on found slots (true/false, default: true).",
    # Backend client
    "SCHENGEN_HEALTH_INTERVAL": "Seconds between backend health probes (default: 30).",
    "SCHENGEN_REQUEST_TIMEOUT": "Read timeout for one check request in seconds (default: 30).",
    # Connectors
    "SCHENGEN_CONSOLE_ENABLED": "Enable the interactive console (true/false, default: true).",
    "SCHENGEN_MATRIX_ENABLED": "Enable Matrix push notifications (true/false, default: false).",
    "SCHENGEN_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "SCHENGEN_MATRIX_USER_ID": "Matrix user ID used to post notifications.",
    "SCHENGEN_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "SCHENGEN_MATRIX_ROOM": "Room ID that receives the notifications.",
    "SCHENGEN_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
}
