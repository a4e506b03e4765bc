# meshnet

Building blocks for a node in an overlay mesh network. The package needs
only the Python standard library and supports Python 3.10 and later.

## What is inside

- `meshnet.timeout.TimerWheel`: a timer wheel with lazy ticks. `add(item, timeout)`
  first moves the wheel forward to the current time. It then puts the item in a
  slot and returns the slot index. `advance(now)` moves the wheel forward by the
  whole ticks that have passed. `purge()` returns the oldest expired item, or
  `None` when none has expired. Items that expire in the same tick come back in
  the order they were added. The wheel takes no locks.
- `meshnet.timeout_system.SystemTimerWheel`: a timer wheel guarded by a lock. It
  moves only when `advance(now)` is called. Items that expire in the same tick
  come back newest first.
- `meshnet.punchy`:
  - `Punchy(settings)` reads the NAT hole punching settings `punch`, `respond`
    and `delay` (default one second) from a nested settings mapping. The older
    `punchy` and `punch_back` keys are still accepted.
  - `Punchy.reload(settings, initial)` applies only the keys that have changed. A
    change to `punch` is logged and ignored.
  - `parse_duration` reads values such as `"1m"`, `"1.5h"` or `"1h2m300ms"`.
- `meshnet.remote_list`:
  - `RemoteList` caches the underlay `Addr` values known for a peer: learned,
    reported and relay entries, per owner.
  - It drops blocked addresses and removes duplicates. It sorts what is left
    with preferred ranges first, then IPv6, then public IPv4, then private IPv4.
    Within each group the order is by address and then by port.
  - `copy_cache()` returns a `Cache` view for each owner.
  - `is_preferred` and `is_private_ip` are also available on their own.
- `meshnet.overlay.route`:
  - `parse_routes` reads `tun.routes` and `parse_unsafe_routes` reads
    `tun.unsafe_routes`. Both raise `RouteError` on bad entries.
  - `ip_within` checks whether one network lies inside another.
  - `make_route_tree` builds a longest-prefix `RouteTree` from the routes that
    have a `via`.
  - `adv_mss` computes the advertised MSS for a `Route`.
- `meshnet.overlay.disabled`:
  - `DisabledTun` stands in for a tun device. It answers simple ICMP echo
    requests by queueing a reply, which `read` then returns.
  - It counts packets in `tx` and `rx` when metrics are enabled.
  - `ip_checksum` and `pretty_packet` are helpers for it.
- `meshnet.sshd`: the command layer of an admin shell.
  - `command.Command` describes one command. Its flags come from an
    `argparse.ArgumentParser`.
  - `exec_command`, `lookup_command`, `match_command`, `all_commands`,
    `dump_commands`, `help_callback`, `help_command` and `check_help_args`
    handle running commands and showing help.
  - `session.Session` splits typed lines the way a shell does and runs them. It
    adds a `logout` command and gives tab completion through `complete(line)`.
  - `writer.StringWriter` writes strings, as UTF-8, and bytes to a binary stream.

## Example

```python
from datetime import datetime, timedelta
from meshnet.timeout import TimerWheel

wheel = TimerWheel(timedelta(seconds=1), timedelta(seconds=10))
wheel.advance(datetime.now())
wheel.add("conn-1", timedelta(seconds=1))
wheel.advance(datetime.now() + timedelta(seconds=3))
print(wheel.purge())  # conn-1
```

```python
import ipaddress
from meshnet.overlay.route import parse_unsafe_routes, make_route_tree

settings = {"tun": {"unsafe_routes": [{"via": "192.168.0.1", "route": "1.0.0.0/28"}]}}
routes = parse_unsafe_routes(settings, ipaddress.ip_network("10.0.0.0/24"))
tree = make_route_tree(routes, allow_mtu=True)
print(tree.most_specific_contains(ipaddress.ip_address("1.0.0.2")))  # 192.168.0.1
```

```python
import io
from meshnet.sshd.command import Command, help_command
from meshnet.sshd.session import Session
from meshnet.sshd.writer import StringWriter

commands = {"help": None}
commands["help"] = help_command(commands)
commands["hello"] = Command("hello", "says hello", lambda flags, args, w: w.write_line("hello"))

out = io.BytesIO()
Session(commands).dispatch_command("hello", StringWriter(out))
print(out.getvalue())  # b'hello\n'
```

## What it does not do

These are parts, not a running node.

- There is no command-line program.
- There is no SSH listener or key authentication. `Session` only dispatches
  lines you hand it.
- No real tun device is created or configured. Parsed routes are not installed
  into the system.
- There is no packet encryption, handshake, lighthouse or relay logic.

## Running the tests

```
pip install -e .[test]
pytest
```