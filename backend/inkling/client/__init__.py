"""
Inkling: Client Package
=======================

What:  Everything that runs on the user's side of POST /api/ocr.

    ┌──────────────┐    ┌───────────────┐    ┌──────────────┐
    │  Acquisition │───▶│ State Machine │───▶│ Relay Client │───▶ POST /api/ocr
    │ files/camera │    │ home → camera │    │   (httpx)    │
    └──────────────┘    │ → processing  │    └──────────────┘
                        │ → result      │
                        └───────────────┘

The CLI (inkling.client.cli) is one UI over the state machine; any other UI
drives the same operations and renders the same snapshots.
"""
