"""Prometheus metrics for the DropIQ search service."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("dropiq", "DropIQ product search application info")
app_info.info({"version": "0.1.0", "name": "dropiq-search"})

# Search metrics
search_requests_total = Counter(
    "search_requests_total",
    "Total number of product searches",
    ["status"],
)

search_duration_seconds = Histogram(
    "search_duration_seconds",
    "Time spent answering a product search",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

search_results_returned = Histogram(
    "search_results_returned",
    "Number of products returned per search page",
    buckets=[0, 1, 5, 10, 25, 50, 100, 200],
)

table_queries_total = Counter(
    "table_queries_total",
    "Per-retailer table queries issued by searches",
    ["retailer", "status"],
)

spelling_corrections_total = Counter(
    "spelling_corrections_total",
    "Search queries rewritten by spelling correction",
    ["method"],
)

history_writes_total = Counter(
    "history_writes_total",
    "Search history upserts",
    ["status"],
)

# Enrichment metrics
enrichment_requests_total = Counter(
    "enrichment_requests_total",
    "Recommendation / price comparison lookups",
    ["kind", "source"],
)


def record_search(success: bool, duration: float, result_count: int = 0):
    """Record a completed (or failed) search."""
    status = "success" if success else "error"
    search_requests_total.labels(status=status).inc()
    search_duration_seconds.observe(duration)
    if success:
        search_results_returned.observe(result_count)


def record_table_query(retailer: str, success: bool):
    """Record one retailer table query."""
    status = "success" if success else "error"
    table_queries_total.labels(retailer=retailer, status=status).inc()


def record_history_write(success: bool):
    """Record a search history upsert."""
    status = "success" if success else "error"
    history_writes_total.labels(status=status).inc()
