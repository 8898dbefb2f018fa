"""Health signal aggregation: time-windowed series, trends, goals and insights."""
