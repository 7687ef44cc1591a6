"""
In-memory remote repository for testing.

FakeRepositoryBackend implements the subset of the remote REST API that
pagesync uses (contents, git data, compare, pulls, merges, pages) on top of
a small git-like object store. It is served to the real client through
``httpx.MockTransport``, so tests exercise the full request path including
throttling, retry and error parsing.
"""

import base64
import hashlib
import itertools
import json
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from pagesync.clock import Clock

Handler = Callable[..., httpx.Response]


@dataclass
class MockCall:
    """Record of a request received by the backend."""

    method: str
    path: str
    params: dict[str, str]
    body: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ScriptedFailure:
    """A failure returned (or raised) instead of the next matching response."""

    method: str
    pattern: str
    status: int = 500
    message: str = "Internal Server Error"
    headers: dict[str, str] = field(default_factory=dict)
    exception: type[httpx.RequestError] | None = None
    remaining: int = 1


def _git_sha(kind: str, data: bytes) -> str:
    return hashlib.sha1(f"{kind} {len(data)}\0".encode() + data).hexdigest()


def _wrap_base64(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60)) + "\n"


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeRepositoryBackend:
    """
    A single remote repository held in memory.

    Example:
        ```python
        backend = FakeRepositoryBackend(files={"index.html": "<h1>Hi</h1>"})
        client = RepositoryClient(
            repository=RepositoryRef("octo", "site"),
            credentials=StaticTokenProvider("ghp_test"),
            http_transport=backend.transport(),
        )
        backend.fail_next("POST", r"/git/trees$", status=500, times=3)
        assert not client.commit_files([...], "msg").success
        assert backend.was_called("PATCH", r"/git/refs/") is False
        ```
    """

    API_HOST = "api.github.com"

    def __init__(
        self,
        owner: str = "octo",
        name: str = "site",
        default_branch: str = "main",
        files: dict[str, str] | None = None,
        clock: Clock | None = None,
        login: str = "octocat",
        scopes: str = "repo, workflow",
        rate_limit: int = 5000,
    ) -> None:
        self.owner = owner
        self.name = name
        self.default_branch = default_branch
        self.clock = clock
        self.login = login
        self.scopes = scopes
        self.permissions = {"admin": False, "push": True, "pull": True}

        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.branches: dict[str, str] = {}
        self.pulls: list[dict[str, Any]] = []
        self.merge_conflict = False

        self.pages_enabled = True
        self.site_url = f"https://{owner}.github.io/{name}/"
        self.site: dict[str, str] = {}
        self.site_status = 200
        self.deployments: list[dict[str, Any]] = []
        self._deployment_script: list[list[dict[str, Any]]] = []

        self.rate_limit = rate_limit
        self.rate_remaining = rate_limit
        self.rate_reset = int(self._now()) + 3600

        self.calls: list[MockCall] = []
        self._failures: list[ScriptedFailure] = []
        self._counter = itertools.count(1)
        self._lock = threading.RLock()

        root_tree = self._store_tree({})
        self.branches[default_branch] = self._store_commit("Initial commit", root_tree, [])
        if files:
            self.push(default_branch, files, "Add initial content")

        self._routes: list[tuple[str, re.Pattern[str], Handler]] = self._build_routes()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def transport(self) -> httpx.MockTransport:
        """An httpx transport serving this backend."""
        return httpx.MockTransport(self.handle)

    def _now(self) -> float:
        return self.clock.time() if self.clock is not None else time.time()

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def fail_next(
        self,
        method: str,
        pattern: str,
        status: int = 500,
        message: str | None = None,
        headers: dict[str, str] | None = None,
        times: int = 1,
    ) -> None:
        """Answer the next ``times`` matching requests with an error response."""
        with self._lock:
            self._failures.append(
                ScriptedFailure(
                    method=method.upper(),
                    pattern=pattern,
                    status=status,
                    message=message or httpx.codes.get_reason_phrase(status) or "Error",
                    headers=dict(headers or {}),
                    remaining=times,
                )
            )

    def raise_next(
        self,
        method: str,
        pattern: str,
        exception: type[httpx.RequestError] = httpx.ConnectError,
        times: int = 1,
    ) -> None:
        """Raise a transport-level httpx error for the next ``times`` matching requests."""
        with self._lock:
            self._failures.append(
                ScriptedFailure(method=method.upper(), pattern=pattern, exception=exception, remaining=times)
            )

    def fail_rate_limited(self, method: str, pattern: str, reset_in: float, times: int = 1) -> None:
        """Primary quota exhausted, resetting ``reset_in`` seconds from now."""
        self.fail_next(
            method,
            pattern,
            status=403,
            message="API rate limit exceeded",
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(self._now() + reset_in)),
            },
            times=times,
        )

    # ------------------------------------------------------------------
    # Repository state helpers
    # ------------------------------------------------------------------

    def push(self, branch: str, files: dict[str, str | None], message: str = "Update") -> str:
        """Commit directly to ``branch`` as another writer would; None deletes a path."""
        with self._lock:
            parent = self.branches[branch]
            tree = dict(self.trees[self.commits[parent]["tree"]])
            for path, content in files.items():
                if content is None:
                    tree.pop(path, None)
                else:
                    tree[path] = self._store_blob(content.encode("utf-8"))
            sha = self._store_commit(message, self._store_tree(tree), [parent])
            self.branches[branch] = sha
            return sha

    def create_branch(self, name: str, from_branch: str | None = None) -> str:
        with self._lock:
            sha = self.branches[from_branch or self.default_branch]
            self.branches[name] = sha
            return sha

    def branch_sha(self, branch: str | None = None) -> str:
        with self._lock:
            return self.branches[branch or self.default_branch]

    def file_content(self, path: str, ref: str | None = None) -> str | None:
        """Text content of ``path`` at ``ref`` (branch or sha), or None."""
        with self._lock:
            tree = self._tree_at(ref or self.default_branch)
            if tree is None or path not in tree:
                return None
            return self.blobs[tree[path]].decode("utf-8")

    def file_bytes(self, path: str, ref: str | None = None) -> bytes | None:
        with self._lock:
            tree = self._tree_at(ref or self.default_branch)
            if tree is None or path not in tree:
                return None
            return self.blobs[tree[path]]

    def add_pull(self, title: str, author: str, head: str, base: str | None = None) -> dict[str, Any]:
        with self._lock:
            number = len(self.pulls) + 1
            pull = {
                "number": number,
                "title": title,
                "state": "open",
                "user": {"login": author},
                "head": {"ref": head},
                "base": {"ref": base or self.default_branch},
                "html_url": f"https://github.com/{self.full_name}/pull/{number}",
            }
            self.pulls.append(pull)
            return pull

    def add_deployment(self, sha: str, status: str | None = "built", status_url: bool = False) -> dict[str, Any]:
        """Record a deployment as the newest one."""
        with self._lock:
            record = self._deployment(sha, status, status_url)
            self.deployments.insert(0, record)
            return record

    def script_deployments(self, states: list[tuple[str, str | None]]) -> None:
        """
        Make successive polls of the deployments listing observe ``states``.

        Each poll consumes one ``(sha, status)`` pair as the newest
        deployment; the last pair stays visible once the script runs out.
        """
        with self._lock:
            deployment_id = next(self._counter)
            self._deployment_script = [
                [self._deployment(sha, status, status is None, deployment_id)] for sha, status in states
            ]

    def publish(self, path: str, html: str) -> None:
        """Serve ``html`` at ``path`` on the published site."""
        with self._lock:
            self.site[path.lstrip("/")] = html

    # ------------------------------------------------------------------
    # Call recording
    # ------------------------------------------------------------------

    def was_called(self, method: str, pattern: str | None = None) -> bool:
        return self.call_count(method, pattern) > 0

    def call_count(self, method: str, pattern: str | None = None) -> int:
        return len(self.get_calls(method, pattern))

    def get_calls(self, method: str | None = None, pattern: str | None = None) -> list[MockCall]:
        with self._lock:
            return [
                call for call in self.calls
                if (method is None or call.method == method.upper())
                and (pattern is None or re.search(pattern, call.path))
            ]

    def reset(self) -> None:
        """Clear recorded calls and pending scripted failures."""
        with self._lock:
            self.calls.clear()
            self._failures.clear()

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            if request.url.host != self.API_HOST:
                return self._serve_site(request)

            path = request.url.path
            body = json.loads(request.content) if request.content else None
            params = dict(request.url.params)
            self.calls.append(MockCall(request.method, path, params, body))
            self.rate_remaining = max(0, self.rate_remaining - 1)

            failure = self._take_failure(request.method, path)
            if failure is not None:
                if failure.exception is not None:
                    raise failure.exception(f"scripted {failure.exception.__name__}", request=request)
                return self._error(failure.status, failure.message, failure.headers)

            for method, route, handler in self._routes:
                match = route.fullmatch(path)
                if method == request.method and match:
                    return handler(body=body, params=params, **match.groupdict())
            return self._error(404, "Not Found")

    def _take_failure(self, method: str, path: str) -> ScriptedFailure | None:
        for failure in self._failures:
            if failure.method == method and re.search(failure.pattern, path):
                failure.remaining -= 1
                if failure.remaining <= 0:
                    self._failures.remove(failure)
                return failure
        return None

    def _build_routes(self) -> list[tuple[str, re.Pattern[str], Handler]]:
        repo = re.escape(f"/repos/{self.full_name}")
        table: list[tuple[str, str, Handler]] = [
            ("GET", r"/user", self._get_user),
            ("GET", r"/rate_limit", self._get_rate_limit),
            ("GET", repo, self._get_repo),
            ("GET", repo + r"/contents/(?P<path>.+)", self._get_contents),
            ("PUT", repo + r"/contents/(?P<path>.+)", self._put_contents),
            ("GET", repo + r"/git/refs/heads/(?P<branch>.+)", self._get_ref),
            ("PATCH", repo + r"/git/refs/heads/(?P<branch>.+)", self._update_ref),
            ("POST", repo + r"/git/refs", self._create_ref),
            ("GET", repo + r"/git/commits/(?P<sha>[0-9a-f]+)", self._get_commit),
            ("POST", repo + r"/git/blobs", self._create_blob),
            ("POST", repo + r"/git/trees", self._create_tree),
            ("POST", repo + r"/git/commits", self._create_commit),
            ("GET", repo + r"/compare/(?P<base>.+?)\.\.\.(?P<head>.+)", self._compare),
            ("GET", repo + r"/pulls", self._list_pulls),
            ("POST", repo + r"/pulls", self._create_pull),
            ("POST", repo + r"/merges", self._merge),
            ("GET", repo + r"/commits", self._list_commits),
            ("GET", repo + r"/pages", self._get_pages),
            ("GET", repo + r"/pages/deployments", self._list_deployments),
        ]
        return [(method, re.compile(pattern), handler) for method, pattern, handler in table]

    def _json(self, status: int, data: Any = None, headers: dict[str, str] | None = None) -> httpx.Response:
        merged = {
            "X-RateLimit-Limit": str(self.rate_limit),
            "X-RateLimit-Remaining": str(self.rate_remaining),
            "X-RateLimit-Reset": str(self.rate_reset),
            "X-GitHub-Request-Id": f"REQ-{next(self._counter)}",
        }
        merged.update(headers or {})
        if data is None:
            return httpx.Response(status, headers=merged)
        return httpx.Response(status, json=data, headers=merged)

    def _error(self, status: int, message: str, headers: dict[str, str] | None = None) -> httpx.Response:
        return self._json(status, {"message": message, "documentation_url": "https://docs.github.com/rest"}, headers)

    # ------------------------------------------------------------------
    # Object store
    # ------------------------------------------------------------------

    def _store_blob(self, data: bytes) -> str:
        sha = _git_sha("blob", data)
        self.blobs[sha] = data
        return sha

    def _store_tree(self, entries: dict[str, str]) -> str:
        sha = _git_sha("tree", json.dumps(sorted(entries.items())).encode())
        self.trees[sha] = dict(entries)
        return sha

    def _store_commit(self, message: str, tree: str, parents: list[str]) -> str:
        payload = json.dumps([message, tree, parents, next(self._counter)]).encode()
        sha = _git_sha("commit", payload)
        self.commits[sha] = {
            "message": message,
            "tree": tree,
            "parents": list(parents),
            "date": _iso(self._now()),
        }
        return sha

    def _resolve(self, ref: str) -> str | None:
        if ref in self.branches:
            return self.branches[ref]
        if ref in self.commits:
            return ref
        return None

    def _tree_at(self, ref: str) -> dict[str, str] | None:
        sha = self._resolve(ref)
        if sha is None:
            return None
        return self.trees[self.commits[sha]["tree"]]

    def _ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.commits[current]["parents"])
        return seen

    def _deployment(
        self, sha: str, status: str | None, status_url: bool, deployment_id: int | None = None
    ) -> dict[str, Any]:
        deployment_id = deployment_id or next(self._counter)
        record: dict[str, Any] = {
            "id": deployment_id,
            "sha": sha,
            "page_url": self.site_url,
            "created_at": _iso(self._now()),
            "updated_at": _iso(self._now()),
        }
        if status is not None:
            record["status"] = status
        if status_url:
            record["status_url"] = f"https://api.github.com/repos/{self.full_name}/pages/deployments/{deployment_id}/status"
        return record

    # ------------------------------------------------------------------
    # Route handlers
    # ------------------------------------------------------------------

    def _get_user(self, **_: Any) -> httpx.Response:
        return self._json(200, {"login": self.login, "type": "User"}, {"X-OAuth-Scopes": self.scopes})

    def _get_rate_limit(self, **_: Any) -> httpx.Response:
        core = {
            "limit": self.rate_limit,
            "remaining": self.rate_remaining,
            "used": self.rate_limit - self.rate_remaining,
            "reset": self.rate_reset,
        }
        return self._json(200, {"resources": {"core": core}, "rate": core})

    def _get_repo(self, **_: Any) -> httpx.Response:
        return self._json(200, {
            "name": self.name,
            "full_name": self.full_name,
            "owner": {"login": self.owner},
            "description": "Site content",
            "private": False,
            "default_branch": self.default_branch,
            "html_url": f"https://github.com/{self.full_name}",
            "has_pages": self.pages_enabled,
            "updated_at": _iso(self._now()),
            "permissions": dict(self.permissions),
        })

    def _get_contents(self, path: str, params: dict[str, str], **_: Any) -> httpx.Response:
        ref = params.get("ref", self.default_branch)
        tree = self._tree_at(ref)
        if tree is None:
            return self._error(404, f"No commit found for the ref {ref}")
        if path not in tree:
            prefix = path.rstrip("/") + "/"
            children = sorted(p for p in tree if p.startswith(prefix))
            if children:
                return self._json(200, [{"type": "file", "path": p, "sha": tree[p]} for p in children])
            return self._error(404, "Not Found")

        data = self.blobs[tree[path]]
        return self._json(200, {
            "type": "file",
            "encoding": "base64",
            "path": path,
            "name": path.rsplit("/", 1)[-1],
            "sha": tree[path],
            "size": len(data),
            "content": _wrap_base64(data),
            "download_url": f"https://raw.githubusercontent.com/{self.full_name}/{ref}/{path}",
        })

    def _put_contents(self, path: str, body: dict[str, Any], **_: Any) -> httpx.Response:
        branch = body.get("branch", self.default_branch)
        if branch not in self.branches:
            return self._error(404, f"Branch {branch} not found")
        parent = self.branches[branch]
        tree = dict(self.trees[self.commits[parent]["tree"]])

        current = tree.get(path)
        given = body.get("sha")
        if current is not None and not given:
            return self._error(422, "Invalid request. \"sha\" wasn't supplied.")
        if current is not None and given != current:
            return self._error(409, f"{path} does not match {given}")

        data = base64.b64decode(body["content"])
        tree[path] = self._store_blob(data)
        sha = self._store_commit(body["message"], self._store_tree(tree), [parent])
        self.branches[branch] = sha
        return self._json(201 if current is None else 200, {
            "content": {
                "path": path,
                "sha": tree[path],
                "size": len(data),
                "download_url": f"https://raw.githubusercontent.com/{self.full_name}/{branch}/{path}",
            },
            "commit": {"sha": sha, "html_url": f"https://github.com/{self.full_name}/commit/{sha}"},
        })

    def _ref_body(self, branch: str) -> dict[str, Any]:
        return {
            "ref": f"refs/heads/{branch}",
            "object": {"sha": self.branches[branch], "type": "commit"},
        }

    def _get_ref(self, branch: str, **_: Any) -> httpx.Response:
        if branch not in self.branches:
            return self._error(404, "Not Found")
        return self._json(200, self._ref_body(branch))

    def _update_ref(self, branch: str, body: dict[str, Any], **_: Any) -> httpx.Response:
        if branch not in self.branches:
            return self._error(422, "Reference does not exist")
        sha = body["sha"]
        if sha not in self.commits:
            return self._error(422, "Object does not exist")
        if not body.get("force") and self.branches[branch] not in self._ancestors(sha):
            return self._error(422, "Update is not a fast forward")
        self.branches[branch] = sha
        return self._json(200, self._ref_body(branch))

    def _create_ref(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        name = body["ref"].removeprefix("refs/heads/")
        if name in self.branches:
            return self._error(422, "Reference already exists")
        if body["sha"] not in self.commits:
            return self._error(422, "Object does not exist")
        self.branches[name] = body["sha"]
        return self._json(201, self._ref_body(name))

    def _get_commit(self, sha: str, **_: Any) -> httpx.Response:
        commit = self.commits.get(sha)
        if commit is None:
            return self._error(404, "Not Found")
        return self._json(200, {
            "sha": sha,
            "message": commit["message"],
            "tree": {"sha": commit["tree"]},
            "parents": [{"sha": p} for p in commit["parents"]],
        })

    def _create_blob(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        if body.get("encoding") == "base64":
            data = base64.b64decode(body["content"])
        else:
            data = body["content"].encode("utf-8")
        return self._json(201, {"sha": self._store_blob(data)})

    def _create_tree(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        base = body.get("base_tree")
        if base is not None and base not in self.trees:
            return self._error(422, "Invalid base_tree")
        tree = dict(self.trees[base]) if base else {}
        for entry in body["tree"]:
            if "content" in entry:
                tree[entry["path"]] = self._store_blob(entry["content"].encode("utf-8"))
            elif entry.get("sha") is None:
                tree.pop(entry["path"], None)
            elif entry["sha"] in self.blobs:
                tree[entry["path"]] = entry["sha"]
            else:
                return self._error(422, f"Invalid sha for {entry['path']}")
        return self._json(201, {"sha": self._store_tree(tree)})

    def _create_commit(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        if body["tree"] not in self.trees or any(p not in self.commits for p in body["parents"]):
            return self._error(422, "Invalid tree or parent")
        sha = self._store_commit(body["message"], body["tree"], body["parents"])
        return self._json(201, {
            "sha": sha,
            "tree": {"sha": body["tree"]},
            "message": body["message"],
            "html_url": f"https://github.com/{self.full_name}/commit/{sha}",
        })

    def _compare(self, base: str, head: str, **_: Any) -> httpx.Response:
        base_sha, head_sha = self._resolve(base), self._resolve(head)
        if base_sha is None or head_sha is None:
            return self._error(404, "Not Found")
        base_ancestors, head_ancestors = self._ancestors(base_sha), self._ancestors(head_sha)
        ahead_by = len(head_ancestors - base_ancestors)
        behind_by = len(base_ancestors - head_ancestors)
        if ahead_by and behind_by:
            status = "diverged"
        elif ahead_by:
            status = "ahead"
        elif behind_by:
            status = "behind"
        else:
            status = "identical"
        return self._json(200, {"status": status, "ahead_by": ahead_by, "behind_by": behind_by})

    def _list_pulls(self, params: dict[str, str], **_: Any) -> httpx.Response:
        state = params.get("state", "open")
        base = params.get("base")
        pulls = [
            p for p in self.pulls
            if (state == "all" or p["state"] == state) and (base is None or p["base"]["ref"] == base)
        ]
        return self._json(200, pulls)

    def _create_pull(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        if body["head"] not in self.branches or body["base"] not in self.branches:
            return self._error(422, "Validation Failed")
        pull = self.add_pull(body["title"], self.login, body["head"], body["base"])
        pull["body"] = body.get("body", "")
        return self._json(201, pull)

    def _merge(self, body: dict[str, Any], **_: Any) -> httpx.Response:
        base, head = body["base"], body["head"]
        if base not in self.branches or head not in self.branches:
            return self._error(404, "Branch not found")
        base_sha, head_sha = self.branches[base], self.branches[head]
        if head_sha in self._ancestors(base_sha):
            return self._json(204)
        if self.merge_conflict:
            return self._error(409, "Merge conflict")
        tree = dict(self.trees[self.commits[base_sha]["tree"]])
        tree.update(self.trees[self.commits[head_sha]["tree"]])
        sha = self._store_commit(body.get("commit_message", f"Merge {head} into {base}"),
                                 self._store_tree(tree), [base_sha, head_sha])
        self.branches[base] = sha
        return self._json(201, {"sha": sha})

    def _list_commits(self, params: dict[str, str], **_: Any) -> httpx.Response:
        sha = self._resolve(params.get("sha", self.default_branch))
        if sha is None:
            return self._error(404, "Not Found")
        limit = int(params.get("per_page", 30))
        history = []
        while sha is not None and len(history) < limit:
            commit = self.commits[sha]
            history.append({
                "sha": sha,
                "html_url": f"https://github.com/{self.full_name}/commit/{sha}",
                "commit": {
                    "message": commit["message"],
                    "author": {"name": self.login, "date": commit["date"]},
                },
            })
            sha = commit["parents"][0] if commit["parents"] else None
        return self._json(200, history)

    def _get_pages(self, **_: Any) -> httpx.Response:
        if not self.pages_enabled:
            return self._error(404, "Not Found")
        return self._json(200, {
            "html_url": self.site_url,
            "status": "built",
            "source": {"branch": self.default_branch, "path": "/"},
            "https_enforced": True,
        })

    def _list_deployments(self, **_: Any) -> httpx.Response:
        if self._deployment_script:
            current = self._deployment_script[0]
            if len(self._deployment_script) > 1:
                self._deployment_script.pop(0)
            return self._json(200, current)
        return self._json(200, self.deployments)

    def _serve_site(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(MockCall(request.method, str(request.url).split("?")[0], dict(request.url.params), None))
        if self.site_status >= 400:
            return httpx.Response(self.site_status, text="Unavailable")
        site_path = httpx.URL(self.site_url).path
        path = request.url.path
        if not path.startswith(site_path):
            return httpx.Response(404, text="Not Found")
        key = path[len(site_path):] or "index.html"
        if key.endswith("/"):
            key += "index.html"
        html = self.site.get(key)
        if html is None:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=html, headers={"Content-Type": "text/html"})


__all__ = ["FakeRepositoryBackend", "MockCall", "ScriptedFailure"]
