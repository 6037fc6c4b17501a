"""
Inkling: Services Layer
=======================

What:  Business logic between the HTTP routes and the hosted vision model.

Service Inventory:
    - CircuitBreaker:            Rejects calls fast while the provider keeps failing
    - VisionEngine (abstract):   Retry + circuit-breaker wrapper around one provider call
    - ClaudeVisionEngine:        Anthropic Messages API with an image block
    - GeminiVisionEngine:        Google Gemini generate_content with an inline blob
    - UploadService:             Content type, size and image-byte checks
    - TranscriptionService:      validate → transcribe → response body
"""
