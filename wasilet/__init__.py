"""
Wasilet - WebAssembly Node Agent

A node agent that runs sandboxed WebAssembly modules as Kubernetes-style
workloads and answers the kubelet callbacks (logs, exec) over HTTP(S).

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- config: Environment-driven configuration
- exec: Exec command model and query parsing
- runtime: Module execution worker, workload handles, status and output
- provider: Workload registry, log retrieval, static pod manifests
- api: Kubelet HTTP/WebSocket routes
"""

__version__ = "1.0.0"
