"""Dashboard-side helpers: session cache and API client."""
