"""Host-side services: storage, messaging, execution contexts."""
