"""
Inkling: API Routes Package
===========================

Route Inventory:
    - ocr.py:     POST /api/ocr     (multipart field `image` → transcribed text)
    - health.py:  GET  /health      (liveness + configured engine)
                  GET  /            (server banner)

Routes stay thin: pull the upload out of the request, call the service,
let the global exception handlers shape every error body.
"""
