"""
Inkling: Package Initializer
============================

What: Handwritten/printed notes to clean text.
How:  Two halves that share this package:

    ┌─────────────────────────────────────┐
    │  client/   capture → relay → result │  ← state machine, camera, CLI
    ├─────────────────────────────────────┤
    │  routes/   POST /api/ocr, /health   │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  services/ upload checks, engines   │  ← hosted vision model calls
    └─────────────────────────────────────┘

    The server keeps nothing on disk. The client keeps nothing past a session.
"""

__version__ = "2.0.0"
