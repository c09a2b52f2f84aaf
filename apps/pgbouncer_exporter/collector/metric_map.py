# PgBouncer admin console mapping definition
# Maps SHOW <namespace> result columns to Prometheus metrics.
#
# Entries are (usage, metric name override, description). Counter names are
# published with a "_total" suffix by the client library.

from .mapping import ColumnUsage

LABEL = ColumnUsage.LABEL
COUNTER = ColumnUsage.COUNTER
GAUGE = ColumnUsage.GAUGE
GAUGE_SCALED = ColumnUsage.GAUGE_SCALED

# One row per entity, every mapped column is a metric
METRIC_ROW_MAPS = {
    "databases": {
        "name": (LABEL, None, "Name of configured database entry"),
        "host": (LABEL, None, "Host pgbouncer connects to"),
        "port": (LABEL, None, "Port pgbouncer connects to"),
        "database": (LABEL, None, "Actual database name pgbouncer connects to"),
        "force_user": (LABEL, None, "When user is part of the connection string, the user pgbouncer connects as"),
        "pool_mode": (LABEL, None, "The database's override pool_mode"),
        "pool_size": (GAUGE, None, "Maximum number of server connections"),
        "reserve_pool": (GAUGE, None, "Maximum number of additional connections for this database"),
        "max_connections": (GAUGE, None, "Maximum number of allowed connections for this database"),
        "current_connections": (GAUGE, None, "Current number of connections for this database"),
        "paused": (GAUGE, None, "1 if this database is currently paused, else 0"),
        "disabled": (GAUGE, None, "1 if this database is currently disabled, else 0"),
    },
    "stats": {
        "database": (LABEL, None, "Statistics are presented per database"),
        # pgbouncer < 1.8
        "total_requests": (COUNTER, "queries_pooled", "Total number of SQL requests pooled by pgbouncer"),
        "avg_req": (GAUGE, "avg_queries", "Average requests per second in last stat period"),
        "avg_query": (GAUGE_SCALED, "avg_query_duration_seconds", "Average query duration in last stat period"),
        # pgbouncer >= 1.8
        "total_xact_count": (COUNTER, "sql_transactions_pooled", "Total number of SQL transactions pooled"),
        "total_query_count": (COUNTER, "sql_queries_pooled", "Total number of SQL queries pooled"),
        "total_received": (COUNTER, "received_bytes", "Total volume in bytes of network traffic received by pgbouncer"),
        "total_sent": (COUNTER, "sent_bytes", "Total volume in bytes of network traffic sent by pgbouncer"),
        "total_xact_time": (GAUGE_SCALED, "server_in_transaction_seconds", "Total number of seconds spent by pgbouncer when connected to PostgreSQL in a transaction"),
        "total_query_time": (GAUGE_SCALED, "queries_duration_seconds", "Total number of seconds spent by pgbouncer when actively connected to PostgreSQL"),
        "total_wait_time": (GAUGE_SCALED, "client_wait_seconds", "Time spent by clients waiting for a server in seconds"),
        "avg_xact_count": (GAUGE, "avg_transactions", "Average transactions per second in last stat period"),
        "avg_query_count": (GAUGE, "avg_sql_queries", "Average queries per second in last stat period"),
        "avg_recv": (GAUGE, "avg_received_bytes", "Average received (from clients) bytes per second"),
        "avg_sent": (GAUGE, "avg_sent_bytes", "Average sent (to clients) bytes per second"),
        "avg_xact_time": (GAUGE_SCALED, "avg_transaction_duration_seconds", "Average transaction duration in seconds"),
        "avg_query_time": (GAUGE_SCALED, "avg_query_time_seconds", "Average query duration in seconds"),
        "avg_wait_time": (GAUGE_SCALED, "avg_wait_seconds", "Time spent by clients waiting for a server in seconds (average per second)"),
    },
    "pools": {
        "database": (LABEL, None, "Database name"),
        "user": (LABEL, None, "User name"),
        "pool_mode": (LABEL, None, "The pooling mode in use"),
        "cl_active": (GAUGE, "client_active_connections", "Client connections linked to server connection and able to process queries"),
        "cl_waiting": (GAUGE, "client_waiting_connections", "Client connections waiting on a server connection"),
        "cl_cancel_req": (GAUGE, "client_cancel_requests", "Client connections that have not forwarded query cancellations to the server yet"),
        "sv_active": (GAUGE, "server_active_connections", "Server connections linked to a client connection"),
        "sv_idle": (GAUGE, "server_idle_connections", "Server connections idle and ready for a client query"),
        "sv_used": (GAUGE, "server_used_connections", "Server connections idle more than server_check_delay, needing server_check_query"),
        "sv_tested": (GAUGE, "server_testing_connections", "Server connections currently running either server_reset_query or server_check_query"),
        "sv_login": (GAUGE, "server_login_connections", "Server connections currently in the process of logging in"),
        "maxwait": (GAUGE, "client_maxwait_seconds", "Age of oldest unserved client connection, in seconds"),
        "maxwait_us": (GAUGE_SCALED, "client_maxwait_subsecond_seconds", "Microsecond part of the age of the oldest unserved client connection, in seconds"),
    },
}

# One row per setting, (key, value, ...) where the key names the metric
METRIC_KV_MAPS = {
    "config": {
        "max_client_conn": (GAUGE, None, "Maximum number of client connections allowed"),
        "default_pool_size": (GAUGE, None, "The default for how many server connections to allow per user/database pair"),
        "min_pool_size": (GAUGE, None, "Mininum number of backends a pool will always retain"),
        "reserve_pool_size": (GAUGE, None, "How many additional connections to allow to a pool once it's crossed its maximum"),
        "reserve_pool_timeout": (GAUGE, "reserve_pool_timeout_seconds", "If a client has not been serviced in this many seconds, pgbouncer enables use of additional connections from reserve pool"),
        "max_db_connections": (GAUGE, None, "Server level maximum connections enforced for a given db, irregardless of pool limits"),
        "max_user_connections": (GAUGE, None, "Maximum number of connections a user can open irregardless of pool limits"),
        "autodb_idle_timeout": (GAUGE, "autodb_idle_timeout_seconds", "Unused pools created via '*' are reclaimed after this interval"),
        "server_reset_query_always": (GAUGE, None, "Boolean indicating whether or not server_reset_query is enforced for all pooling modes, or just session"),
        "server_check_delay": (GAUGE, "server_check_delay_seconds", "How long to keep released connections available for immediate re-use, without running sanity-check queries on it"),
        "query_timeout": (GAUGE, "query_timeout_seconds", "Maximum time that a query can run for before being cancelled"),
        "query_wait_timeout": (GAUGE, "query_wait_timeout_seconds", "Maximum time that a query can wait to be executed before being cancelled"),
        "client_idle_timeout": (GAUGE, "client_idle_timeout_seconds", "Client connections idling longer than this many seconds are closed"),
        "client_login_timeout": (GAUGE, "client_login_timeout_seconds", "Maximum time in seconds for a client to either login, or be disconnected"),
        "idle_transaction_timeout": (GAUGE, "idle_transaction_timeout_seconds", "If client has been in 'idle in transaction' state longer than this amount in seconds, it will be disconnected"),
        "server_lifetime": (GAUGE, "server_lifetime_seconds", "The pooler will close an unused server connection that has been connected longer than this many seconds"),
        "server_idle_timeout": (GAUGE, "server_idle_timeout_seconds", "If a server connection has been idle more than this many seconds it will be dropped"),
        "server_connect_timeout": (GAUGE, "server_connect_timeout_seconds", "Maximum time allowed for connecting and logging into a backend server"),
        "server_login_retry": (GAUGE, "server_login_retry_seconds", "If connecting to a backend failed, this is the wait interval in seconds before retrying"),
        "server_round_robin": (GAUGE, None, "Boolean; if 1, pgbouncer uses backends in a round robin fashion. If 0, it uses LIFO to minimize connectivity to backends"),
        "suspend_timeout": (GAUGE, "suspend_timeout_seconds", "Timeout for how long pgbouncer waits for buffer flushes before killing connections during pgbouncer admin SHUTDOWN and SUSPEND invocations"),
        "disable_pqexec": (GAUGE, None, "Boolean; 1 means pgbouncer enforce Simple Query Protocol; 0 means it allows multiple queries in a single packet"),
        "dns_max_ttl": (GAUGE, "dns_max_cache_seconds", "Irregardless of DNS TTL, this is the TTL that pgbouncer enforces for dns lookups it does for backends"),
        "dns_nxdomain_ttl": (GAUGE, "dns_nxdomain_ttl_seconds", "Irregardless of DNS TTL, this is the period enforced for negative DNS answers"),
        "dns_zone_check_period": (GAUGE, "dns_zone_check_period_seconds", "Period to check if zone serial numbers have changed"),
        "max_packet_size": (GAUGE, None, "Maximum packet size for postgresql packets that pgbouncer will relay to backends"),
        "pkt_buf": (GAUGE, None, "Internal buffer size for packets. See docs"),
        "sbuf_loopcnt": (GAUGE, None, "How many results to process for a given connection's packet results before switching to others to ensure fairness. See docs"),
        "tcp_defer_accept": (GAUGE, None, "Configurable for TCP_DEFER_ACCEPT"),
        "tcp_socket_buffer": (GAUGE, None, "Configurable for tcp socket buffering; 0 is kernel managed"),
        "tcp_keepalive": (GAUGE, None, "Boolean; if 1, tcp keepalive is enabled w/ OS defaults. If 0, disabled"),
        "tcp_keepcnt": (GAUGE, None, "See TCP documentation for this field"),
        "tcp_keepidle": (GAUGE, None, "See TCP documentation for this field"),
        "tcp_keepintvl": (GAUGE, None, "See TCP documentation for this field"),
        "verbose": (GAUGE, "log_verbosity_level", "If log verbosity is increased. Only relevant as a metric if log volume begins exceeding log consumption"),
        "stats_period": (GAUGE, "stats_period_seconds", "Periodicity in seconds of pgbouncer recalculating internal stats"),
        "log_connections": (GAUGE, None, "Whether connections are logged or not"),
        "log_disconnections": (GAUGE, None, "Whether connection disconnects are logged"),
        "log_pooler_errors": (GAUGE, None, "Whether pooler errors are logged or not"),
    },
    "lists": {
        "databases": (GAUGE, None, "Count of databases"),
        "users": (GAUGE, None, "Count of users"),
        "pools": (GAUGE, None, "Count of pools"),
        "free_clients": (GAUGE, None, "Count of free clients"),
        "used_clients": (GAUGE, None, "Count of used clients"),
        "login_clients": (GAUGE, None, "Count of clients in login state"),
        "free_servers": (GAUGE, None, "Count of free servers"),
        "used_servers": (GAUGE, None, "Count of used servers"),
        "dns_names": (GAUGE, "cached_dns_names", "Count of DNS names in the cache"),
        "dns_zones": (GAUGE, "cached_dns_zones", "Count of DNS zones in the cache"),
        "dns_queries": (GAUGE, "in_flight_dns_queries", "Count of in-flight DNS queries"),
    },
}
