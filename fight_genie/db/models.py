"""SQL schema definitions for Fight Genie."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS event_batches (
    event_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_link TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS events (
    fight_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES event_batches(event_id),
    Event TEXT NOT NULL,
    Date TEXT NOT NULL,
    City TEXT,
    State TEXT,
    Country TEXT,
    fighter1 TEXT NOT NULL,
    fighter2 TEXT NOT NULL,
    WeightClass TEXT NOT NULL DEFAULT 'TBD',
    is_main_card INTEGER NOT NULL DEFAULT 0,
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    event_link TEXT
);

CREATE TABLE IF NOT EXISTS stored_predictions (
    prediction_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES event_batches(event_id),
    card_type TEXT NOT NULL CHECK (card_type IN ('main', 'prelims')),
    model_used TEXT NOT NULL CHECK (model_used IN ('gpt', 'claude')),
    prediction_data TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS prediction_outcomes (
    outcome_id INTEGER PRIMARY KEY AUTOINCREMENT,
    prediction_id INTEGER NOT NULL UNIQUE REFERENCES stored_predictions(prediction_id),
    event_id INTEGER NOT NULL REFERENCES event_batches(event_id),
    model_used TEXT,
    fight_outcomes TEXT NOT NULL,
    parlay_outcomes TEXT NOT NULL DEFAULT '[]',
    prop_outcomes TEXT NOT NULL DEFAULT '[]',
    confidence_accuracy REAL,
    created_at TEXT NOT NULL,
    last_updated TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS odds_history (
    odds_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES event_batches(event_id),
    fighter1 TEXT NOT NULL,
    fighter2 TEXT NOT NULL,
    fighter1_odds REAL,
    fighter2_odds REAL,
    bookmaker TEXT NOT NULL,
    market_type TEXT NOT NULL DEFAULT 'h2h',
    last_updated TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS market_analysis (
    analysis_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES event_batches(event_id),
    model_used TEXT NOT NULL,
    analysis_data TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS server_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    server_id TEXT NOT NULL,
    subscription_type TEXT NOT NULL CHECK (subscription_type IN ('LIFETIME', 'EVENT')),
    payment_id TEXT UNIQUE,
    status TEXT NOT NULL,
    event_id INTEGER,
    expiration_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS http_cache (
    cache_id INTEGER PRIMARY KEY AUTOINCREMENT,
    cache_key TEXT NOT NULL UNIQUE,
    cache_value TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_event_id
    ON events(event_id);

CREATE INDEX IF NOT EXISTS idx_events_date
    ON events(Date, is_completed);

CREATE INDEX IF NOT EXISTS idx_events_link
    ON events(event_link);

CREATE UNIQUE INDEX IF NOT EXISTS idx_predictions_key
    ON stored_predictions(event_id, card_type, model_used);

CREATE INDEX IF NOT EXISTS idx_outcomes_event
    ON prediction_outcomes(event_id);

CREATE INDEX IF NOT EXISTS idx_odds_event
    ON odds_history(event_id, last_updated);

CREATE INDEX IF NOT EXISTS idx_market_analysis_event
    ON market_analysis(event_id, model_used, created_at);

CREATE INDEX IF NOT EXISTS idx_server_subs_server
    ON server_subscriptions(server_id);

CREATE INDEX IF NOT EXISTS idx_server_subs_expiration
    ON server_subscriptions(expiration_date);

CREATE INDEX IF NOT EXISTS idx_http_cache_expiry
    ON http_cache(expires_at);
"""
