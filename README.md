# svcpatterns

Small, self-contained building blocks for services that have to stay up
when their dependencies misbehave. Everything is a library: there is no
command to run.

## What is inside

| Module | What it gives you |
| --- | --- |
| `svcpatterns.hashring` | `HashRing` mapping request keys to `Node`s through a fixed number of slots. `get_node(uid)` counts requests per slot; `balance()` re-cuts the slots into contiguous ranges so each node's share of the counted traffic is close to the average, then resets the counters. `Node.get_cache(uid)` keeps a small text file per key in `cache_dir` (the directory must exist). |
| `svcpatterns.token_bucket` | `TokenBucket(capacity, rate)` refilling `rate` tokens per whole elapsed second, with `consume()`, `add()` and a `tokens` property; `rate_limit_interceptor(bucket)` always calls the handler, as `handler(request, rate_limited=...)`. |
| `svcpatterns.articles` | `ArticleService(cache, store)` whose `list_articles(author, rate_limited)` reads the cache first; on a miss it raises `DataUnavailableError` if the request is rate limited, otherwise it asks the store and writes the result back to the cache for ten minutes. `SqliteArticleStore` keeps `Article`s in SQLite. |
| `svcpatterns.weighted_client` | `WeightedClient` keeping one weight per URL. `adjust_weight(url, error)` sets it to 0 on `NetworkFailure` or `CircuitOpen`, takes one off on `RequestTimeout` and halves it on `Throttled` (never below 1). `get_weight(url)` returns `None` for unknown URLs. |
| `svcpatterns.fault_server` | `FaultServer("host:port")`, an HTTP server that answers with the status of the fault named by the `error` query parameter (`network`, `timeout`, `throttle`, `circuit_breaker`, otherwise 200); `status_for_fault()` is the mapping on its own. Usable as a context manager. |
| `svcpatterns.balancer` | `Node` with a `NodeStatus`, and `WeightedRoundRobinBalancer` (smooth weighted round robin) raising `NoAvailableNodesError` when nothing can be chosen. |
| `svcpatterns.redis_failover` | `RedisManager` routing `get_value`/`set_value` to a main client and failing over to a backup after `main_break_num` failed pings, shifting traffic gradually (`GrayMode`) and back after `main_recover_num` good pings. `check_heartbeat()` pings once; `heartbeat_checker(stop_event, interval)` loops. Clients need `get`, `set(..., ex=...)` and `ping`, as a redis-py client has. |
| `svcpatterns.memory_monitor` | `MemoryMonitor` interface, `PhysicalMonitor` (psutil) and `MockMonitor`, which reports 95% between two and five seconds after creation and 50% otherwise. |
| `svcpatterns.memory_limiter` | `MemoryLimiter(monitor, interval)` polling in the background, limiting at 80% and above and releasing at 60% and below; its interceptor raises `RateLimitedError` while limited. `timestamp_handler` is a sample handler. |
| `svcpatterns.delay_store` | `DelayMsgDAO` storing `StoredDelayMsg`s in SQLite, spread round robin across several tables; `find_delay_msg(table, limit)` returns due waiting messages newest first and `complete(table, *ids)` marks them done. |

## Examples

Rate limiting with a token bucket:

```python
from svcpatterns.token_bucket import TokenBucket

bucket = TokenBucket(capacity=5, rate=1)
if bucket.consume(1):
    ...  # handle the request
else:
    ...  # serve from cache only
```

Adjusting node weights after failures:

```python
from svcpatterns.weighted_client import WeightedClient, RequestTimeout, Throttled

client = WeightedClient()
client.add_node("http://node-a.example.com", 50)
client.adjust_weight("http://node-a.example.com", RequestTimeout())  # 49
client.adjust_weight("http://node-a.example.com", Throttled())       # 24
```

Smooth weighted round robin:

```python
from svcpatterns.balancer import Node, WeightedRoundRobinBalancer

nodes = [Node(url="node1", weight=2), Node(url="node2", weight=1), Node(url="node3", weight=1)]
balancer = WeightedRoundRobinBalancer()
order = [balancer.select(nodes).url for _ in range(4)]
# ["node1", "node2", "node3", "node1"]
```

Storing delayed messages:

```python
import sqlite3
from svcpatterns.delay_store import DelayMsgDAO, StoredDelayMsg

dao = DelayMsgDAO(sqlite3.connect(":memory:"), tables=["delay_tab_0", "delay_tab_1"])
dao.create_tables()
table, stored = dao.insert(StoredDelayMsg(topic="orders", value=b"expire", deadline=0))
due = dao.find_delay_msg(table, 10)
dao.complete(table, *(msg.id for msg in due))
```

## What it does not do

- There is no message-broker integration. `svcpatterns.delay_store` only
  stores delayed messages and finds the due ones; reading them from a queue,
  forwarding them to their topic when due, and delaying by partition are left
  to the caller.
- The balancer picks among the nodes it is given; the package has no client
  that moves nodes between healthy, probation and unhealthy or recovers them
  over time.
- No command-line tool and no long-running service are provided; servers and
  background loops run only when your code starts them.

## Requirements

Python 3.10 or later. `psutil` is used by `PhysicalMonitor`; everything else
relies on the standard library, with SQLite for storage and duck-typed cache
clients.