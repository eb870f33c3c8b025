"""HTTP server package (FastAPI) for the .wav transcription endpoint."""
