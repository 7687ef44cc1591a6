#!/usr/bin/env python3
"""
Basic pagesync usage example.

Runs against the in-memory backend from pagesync.testing, so no token or
network access is needed.
Run with: python examples/python_sdk/basic_usage.py
"""

from pagesync import (
    ConfigurationError,
    EventKind,
    FileChange,
    PageSyncError,
    RepositoryClient,
    RepositoryRef,
    RetryPolicy,
    StaticTokenProvider,
)
from pagesync.testing import FakeClock, FakeRepositoryBackend, RecordingNotifier

print("=== pagesync Basic Usage Example ===\n")

# 1. Exception hierarchy
print("1. Testing exception classes...")
try:
    RepositoryRef.parse("not-a-repository")
except PageSyncError as e:
    assert isinstance(e, ConfigurationError)
    print(f"   Caught PageSyncError: {e}")
    print(f"   Code: {e.code}, Message: {e.message}")

print("\n   OK: Exception classes working\n")

# 2. Client wired to an in-memory remote
print("2. Creating a client...")
clock = FakeClock()
notifier = RecordingNotifier()
backend = FakeRepositoryBackend(files={"index.html": "<h1>Welcome</h1>"}, clock=clock)
client = RepositoryClient(
    repository=RepositoryRef("octo", "site"),
    credentials=StaticTokenProvider("ghp_example_token_0000000000"),
    retry_policy=RetryPolicy(jitter=0.0),
    notifier=notifier,
    clock=clock,
    http_transport=backend.transport(),
)
access = client.check_access()
print(f"   {access.message} (scopes: {', '.join(access.granted_scopes)})")

print("\n   OK: Client created\n")

# 3. Reads and writes
print("3. Reading and writing files...")
page = client.read_file("index.html")
print(f"   Read index.html from {page.source.value}: {page.content}")

outcome = client.write_file("index.html", "<h1>Welcome back</h1>", "Update greeting")
print(f"   Write: {outcome.message} ({outcome.commit_sha[:7]})")

backend.fail_next("PUT", r"/contents/index\.html$", status=409)
outcome = client.write_file_with_retry("index.html", "<h1>Hello</h1>", "Retry on conflict")
print(f"   Write with retry: {outcome.message} after {outcome.attempts} attempts")

print("\n   OK: Reads and writes working\n")

# 4. Atomic multi-file commit
print("4. Committing several files at once...")
commit = client.commit_files(
    [
        FileChange("index.html", "<h1>Release v2</h1>"),
        FileChange("img/dot.gif", b"GIF89a\x01\x00\x01\x00"),
    ],
    "Release v2",
)
print(f"   {commit.message}: {commit.sha[:7]}")

print("\n   OK: Commit working\n")

# 5. Deployment monitoring
print("5. Monitoring the deployment...")
backend.script_deployments([(commit.sha, "building"), (commit.sha, "built")])
backend.publish("index.html", "<h1>Release v2</h1>")
result = client.deployments.run_workflow(
    commit.sha,
    expected_markers=["Release v2"],
    progress=lambda pct, msg: print(f"   [{pct:5.1f}%] {msg}"),
)
print(f"   {result.message} (monitored {result.monitor.duration:.0f}s of simulated time)")

print("\n   OK: Deployment workflow working\n")

# 6. Offline mode
print("6. Going offline...")
backend.fail_next("GET", r"/contents/about\.html$", status=503, times=3)
about = client.read_file("about.html")
print(f"   about.html served from {about.source.value}, offline={client.offline.is_offline}")
print(f"   Events: {[kind.value for kind in notifier.kinds() if kind is EventKind.ENTERED_OFFLINE]}")

print("\n   OK: Offline mode working\n")

client.close()
print("=== All checks passed ===")
