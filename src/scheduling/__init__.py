"""B2B delivery scheduling: turn-based negotiation of delivery windows."""
