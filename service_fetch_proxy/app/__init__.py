"""
Edge fetch proxy service package.

The proxy fronts arbitrary https origins, enforcing:
- Target validation: https only, no loopback or private-network hosts
- Rate limiting: fixed window per header-derived client key
- Caching: cache-aside edge cache with a short max-age

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.validation: Target URL validator and private-network guard.
- app.ratelimit: Fixed-window limiter and client key derivation.
- app.caching: Edge cache capability (memory, Redis).
- app.adapters: Origin HTTP client.
- app.domain: Fetch pipeline and JSON response shaping.
"""
