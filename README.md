# serverkit

Building blocks for event-driven network servers on POSIX systems, plus a
set of small servers and demonstrations built from them. It uses only the
standard library.

## What is inside

Timer containers for dropping idle connections:

- `serverkit.sorted_timers` – `SortedTimerList`, a list of `UtilTimer`
  objects kept in order of expiry. `tick(now)` runs and removes every timer
  whose expiry has passed and returns them.
- `serverkit.time_wheel` – `TimeWheel`, a 60-slot timing wheel with
  one-second slots. `add_timer(timeout, callback, user_data)` returns a
  `WheelTimer`; `tick()` advances the wheel by one slot and fires the timers
  that are due there.
- `serverkit.time_heap` – `TimeHeap`, a min-heap of `HeapTimer` objects.
  `del_timer` only disarms a timer; it leaves the heap when `tick` reaches it.

Concurrency helpers:

- `serverkit.sync` – `Semaphore` (starts at zero), `Locker` (usable as a
  context manager) and `Cond`.
- `serverkit.threadpool` – `ThreadPool`, a fixed set of worker threads that
  take requests from a bounded queue and call their `process()` method.
  `append` returns `False` once the queue is over its limit; `stop` joins
  the workers.

HTTP:

- `serverkit.http_conn` – `HttpConn`, an incremental parser for HTTP/1.1
  `GET` requests. `feed` adds received bytes, `process_read` parses what has
  arrived, `do_request` maps the URL onto the document root, and
  `process_write` and `output` build the response (200, 400, 403, 404 or
  500).
- `serverkit.http_server` – `HttpServer`, a selector-driven event loop that
  hands readable connections to a `ThreadPool`. `serve_forever` runs it and
  `shutdown` stops it from another thread.

Other pieces:

- `serverkit.signal_pipe` – `SignalPipe` turns caught signals into bytes on
  a socket pair so an event loop can select on them.
- `serverkit.idle_server` – `IdleServer` and `RemainingTimeout`.
- `serverkit.connect` – `timeout_connect(ip, port, timeout)` raises
  `TimeoutError` if the connection takes too long.
- `serverkit.oob_server` – `serve_oob(conn, out)` reports normal and
  out-of-band TCP data separately.
- `serverkit.fd_passing` – `send_fd` and `recv_fd` over a Unix socket.
- `serverkit.binary_sem` – `pv(sem, op)` and `run_demo`.
- `serverkit.shm_talk` – `SharedSlots` and `TalkServer`.
- `serverkit.signal_thread` – `wait_for_signals` and `start_signal_thread`
  for handling signals synchronously in one thread.

Example of a timing wheel:

```python
from serverkit.time_wheel import TimeWheel

def expired(data):
    print("closing", data)

wheel = TimeWheel()
timer = wheel.add_timer(3, expired, "client-1")
for _ in range(4):
    wheel.tick()          # call once a second
```

## Commands

Every network command takes the address and port to listen on (or, for
`serverkit-connect`, to connect to):

| Command | What it does |
| --- | --- |
| `serverkit-http IP PORT` | Static-file HTTP server backed by a thread pool (document root `/var/www/html`). |
| `serverkit-signals IP PORT` | Accepts connections, ignores `SIGHUP` and `SIGCHLD`, stops on `SIGTERM` or `SIGINT`. |
| `serverkit-idle IP PORT` | Closes connections that stay silent for fifteen seconds; stops on `SIGTERM`. |
| `serverkit-connect IP PORT` | Connects with a ten-second timeout. |
| `serverkit-oob IP PORT` | Accepts one connection and reports normal and out-of-band data. |
| `serverkit-talk IP PORT` | Chat server for up to five clients: each client gets a forked process, messages pass through shared memory. |
| `serverkit-passfd [FILE]` | A child process opens `FILE` (default `test.txt`) and passes its descriptor to the parent, which reads from it. |
| `serverkit-sem` | A parent and a child process take turns holding a binary semaphore. |
| `serverkit-sigthread` | Waits for `SIGQUIT` and `SIGUSR1` in a dedicated thread. |

## What it does not do

There is no pre-forked process pool and no server that runs programs named
by clients. Servers here run in a single process with a thread pool
(`serverkit-http`) or fork one process per client (`serverkit-talk`).

## Tests

```
pip install -e ".[test]"
pytest
```