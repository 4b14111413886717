"""HTTP submission gateway for face-dedup."""
