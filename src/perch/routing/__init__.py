"""Routing: flattened route table compiled into a trie.

Routes are collected from every mounted extension at build time and
compiled into an immutable lookup structure before serving.
"""

from perch.routing.route import Route, RouteEntry, RouteMatch
from perch.routing.router import Router

__all__ = ["Route", "RouteEntry", "RouteMatch", "Router"]
