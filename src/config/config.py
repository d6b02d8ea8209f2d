import os


class Config:
    """
    Configuration class for environment variables and default settings.
    """

    PORT = int(os.environ.get("PORT", "3000"))
    INTERVAL_SECONDS = int(os.environ.get("MONITOR_INTERVAL_SECONDS", "60"))

    # Per-source probe deadlines; status and aggregator sources get less time than direct checks
    DIRECT_TIMEOUT_SECONDS = float(os.environ.get("DIRECT_TIMEOUT_SECONDS", "8"))
    STATUS_API_TIMEOUT_SECONDS = float(
        os.environ.get("STATUS_API_TIMEOUT_SECONDS", "3")
    )
    AGGREGATOR_TIMEOUT_SECONDS = float(
        os.environ.get("AGGREGATOR_TIMEOUT_SECONDS", "5")
    )
    # Ceiling for the whole fallback chain of one institution
    INSTITUTION_DEADLINE_SECONDS = float(
        os.environ.get("INSTITUTION_DEADLINE_SECONDS", "30")
    )
    MAX_REDIRECTS = int(os.environ.get("MAX_REDIRECTS", "5"))

    SLOW_LATENCY_MS = int(os.environ.get("SLOW_LATENCY_MS", "2000"))
    CRITICAL_LATENCY_MS = int(os.environ.get("CRITICAL_LATENCY_MS", "5000"))

    AGGREGATOR_URL_TEMPLATE = os.environ.get(
        "AGGREGATOR_URL_TEMPLATE", "https://downdetector.com.br/fora-do-ar/{id}"
    )
    AGGREGATOR_LOW_THRESHOLD = int(os.environ.get("AGGREGATOR_LOW_THRESHOLD", "50"))
    AGGREGATOR_HIGH_THRESHOLD = int(
        os.environ.get("AGGREGATOR_HIGH_THRESHOLD", "100")
    )
    AGGREGATOR_MAX_REPORT_AGE_MINUTES = int(
        os.environ.get("AGGREGATOR_MAX_REPORT_AGE_MINUTES", "30")
    )

    MAX_CONCURRENT_INSTITUTIONS = int(
        os.environ.get("MAX_CONCURRENT_INSTITUTIONS", "4")
    )
    PING_INTERVAL_SECONDS = float(os.environ.get("PING_INTERVAL_SECONDS", "30"))

    MONITOR_LOG_PATH = os.environ.get("MONITOR_LOG_PATH", "monitoramento_bancos.log")
    # Optional JSON file overriding the built-in roster
    INSTITUTIONS_FILE = os.environ.get("INSTITUTIONS_FILE")
