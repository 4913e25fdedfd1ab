# mockinterview/
# ├── core/       # settings, logging, errors, shared app context
# ├── db/         # engine and session factory
# ├── models/     # SQLAlchemy tables (sessions, users)
# ├── schemas/    # camelCase request/response models
# ├── services/   # persistence, Gemini, ElevenLabs, audio, interview flow
# └── routers/    # HTTP and WebSocket endpoints
