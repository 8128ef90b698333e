"""Routing trie used by the host application."""

from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigurationError
from .models import HTTPMethod


def split_path(path: str) -> List[str]:
    return [segment for segment in path.split('/') if segment]


class RouteNode:
    """A node in the route trie structure.

    Each node represents a path segment and can have:
    - static_children: Dict mapping exact segment strings to child nodes
    - param_child: Single child node for path parameters (e.g., :id)
    - routes: Dict mapping HTTP methods to the route registered at this path
    """

    def __init__(self):
        self.static_children: Dict[str, "RouteNode"] = {}
        self.param_child: Optional[Tuple[str, "RouteNode"]] = None  # (param_name, node)
        self.routes: Dict[HTTPMethod, Any] = {}

    def add_route(self, segments: List[str], method: HTTPMethod, route: Any, path: str = "") -> None:
        """Add a route to the trie.

        Args:
            segments: Path segments (e.g., ['v1', 'posts', ':postId'])
            method: HTTP method
            route: Object returned by match() for this path and method
            path: Full template, for error messages

        Raises:
            ConfigurationError: if the method and path are already registered,
                or a parameter segment reuses a position under another name.
        """
        if not segments:
            if method in self.routes:
                raise ConfigurationError(f"Route {method.value} {path} is already registered")
            self.routes[method] = route
            return

        segment = segments[0]
        remaining = segments[1:]

        if segment.startswith(':'):
            param_name = segment[1:]
            if self.param_child is None:
                self.param_child = (param_name, RouteNode())
            existing_name, child_node = self.param_child
            if existing_name != param_name:
                raise ConfigurationError(
                    f"Route {method.value} {path} names parameter {param_name!r} "
                    f"where another route already uses {existing_name!r}"
                )
            child_node.add_route(remaining, method, route, path)
        else:
            if segment not in self.static_children:
                self.static_children[segment] = RouteNode()
            self.static_children[segment].add_route(remaining, method, route, path)

    def check_route(self, segments: List[str], method: HTTPMethod, path: str = "") -> None:
        """Raise the ConfigurationError add_route would raise, without changing the trie."""
        node = self
        for segment in segments:
            if segment.startswith(':'):
                if node.param_child is None:
                    return
                existing_name, node = node.param_child
                if existing_name != segment[1:]:
                    raise ConfigurationError(
                        f"Route {method.value} {path} names parameter {segment[1:]!r} "
                        f"where another route already uses {existing_name!r}"
                    )
            else:
                if segment not in node.static_children:
                    return
                node = node.static_children[segment]
        if method in node.routes:
            raise ConfigurationError(f"Route {method.value} {path} is already registered")

    def find(self, segments: List[str], method: Optional[HTTPMethod] = None) -> Optional[Tuple["RouteNode", Dict[str, str]]]:
        """Find the node for a concrete path, preferring static segments.

        With a method, only nodes that have a route for it match.

        Returns:
            Tuple of (node, path_params) if a node with routes matches, None otherwise
        """
        if not segments:
            if method is None:
                return (self, {}) if self.routes else None
            return (self, {}) if method in self.routes else None

        segment = segments[0]
        remaining = segments[1:]

        # Try static match first (more specific)
        if segment in self.static_children:
            result = self.static_children[segment].find(remaining, method)
            if result:
                return result

        if self.param_child:
            param_name, child_node = self.param_child
            result = child_node.find(remaining, method)
            if result:
                node, params = result
                params[param_name] = segment
                return (node, params)

        return None


class RouteTable:
    """Method + path lookup over a RouteNode trie."""

    def __init__(self):
        self._root = RouteNode()

    def add(self, method: HTTPMethod, path: str, route: Any) -> None:
        """Insert a route; a conflicting route leaves the table unchanged."""
        self.check(method, path)
        self._root.add_route(split_path(path), method, route, path)

    def check(self, method: HTTPMethod, path: str) -> None:
        """Raise ConfigurationError if ``method path`` conflicts with a registered route."""
        self._root.check_route(split_path(path), method, path)

    def match(self, method: HTTPMethod, path: str) -> Tuple[Optional[Any], Dict[str, str], List[HTTPMethod]]:
        """Match a request.

        Returns:
            (route, path_params, allowed_methods). route is None when nothing is
            registered for the method; allowed_methods is empty when the path
            itself is unknown.
        """
        segments = split_path(path)
        found = self._root.find(segments, method)
        if found is not None:
            node, params = found
            return node.routes[method], params, sorted(node.routes, key=lambda m: m.value)

        found = self._root.find(segments)
        if found is None:
            return None, {}, []
        node, params = found
        allowed = sorted(node.routes, key=lambda m: m.value)
        return node.routes.get(method), params, allowed
