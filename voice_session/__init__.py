"""
Voice Session Pipeline - real-time voice conversations with AI agents

This package runs live voice calls between a caller and a configured AI agent.
For every call it multiplexes an inbound audio stream with three external
providers (speech-to-text, chat completion, text-to-speech) into one ordered,
recoverable conversation loop.

Architecture Overview:
- FastAPI server exposing one WebSocket per live session
- One state machine per session sequencing transcription, completion and synthesis
- Closed-book answering for agents with knowledge documents
- Process-wide session registry with idle eviction

Key Components:
- bot: Conversation context builder and the session state machine
- config: Constants, environment settings and logging setup
- handlers: Connect/disconnect, audio streaming and REST chat handlers
- models: Agent, session and wire-format models plus the session registry
- services: Provider HTTP clients, agent directory, audio decoding, dev client
- websocket_manager: Binds WebSocket connections to session state machines

Getting Started:
1. Set up environment variables:
   - DEEPGRAM_API_KEY, OPENAI_API_KEY, ELEVENLABS_API_KEY: provider credentials
   - AGENTS_FILE: JSON export of agents and knowledge documents
   - PORT / HOST / LOG_LEVEL: server options

2. Start the server:
   ```bash
   python run.py
   ```

3. Connect a client to ws://your-server:8000/ws/transcription/{agent_id}/{session_id}
"""
