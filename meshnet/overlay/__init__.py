"""Overlay device helpers: route parsing, route lookup and a disabled tun stand-in."""