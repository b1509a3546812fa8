"""
External integrations for the voice pipeline.

Key components:
- transcription_client / completion_client / synthesis_client: One HTTP client
  per provider. Each wraps a single call and reports failures as a typed
  ProviderError carrying the provider, HTTP status and raw body. No retries.
- agent_directory: Read-only lookup of agents and their knowledge documents.
- audio_transcoder: Decodes inbound WebSocket frames into audio chunks.
- websocket_client: Development client for the session WebSocket.
- errors: Exception hierarchy shared by the package.
"""

# Services module initialization
