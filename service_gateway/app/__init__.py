"""
Edge gateway package for the Access layer.

The gateway fronts a small set of backends, enforcing:
- Authentication: signed token checked against the issuer's key set
- Routing: the `service` query parameter picks the backend
- Transcoding: subscription backends are rewritten into config lines

Structure:
- app.main: FastAPI app, the catch-all route and pipeline wiring.
- app.auth: Key-set provider and token verifier.
- app.routing: Service targets and dispatch.
- app.adapters: HTTP client for backends.
- app.subscription: Subscription blob parsing and rendering.
"""
