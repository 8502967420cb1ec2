"""
HTTP client gateway package for the Creator Platform client layer.

Every outgoing API call from the member, creator and admin surfaces goes
through one gateway instance, which:
- Annotates requests with credentials, caller role, device and timezone
- Queues requests made offline and replays them in arrival order
- Serves recently cached reads when the network is unreachable
- Refreshes an expired access token once and retries the request
- Rejects every failure with one normalized GatewayError

Structure:
- app.gateway: the request pipeline.
- app.main: default object graph wiring.
- app.annotation, app.offline, app.caching, app.auth, app.domain: pipeline stages.
- app.adapters: per-domain service clients.
- app.realtime: WebSocket event channel.
"""
