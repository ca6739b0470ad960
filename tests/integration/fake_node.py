# PATH: tests/integration/fake_node.py
"""
Minimal stand-in for `hardhat node --fork`, used by the integration tests.

Accepts the same fork flags, answers eth_blockNumber and eth_chainId over
HTTP JSON-RPC and exits with code 0 on SIGINT.
"""

import argparse
import json
import os
import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer


def build_handler(block_number: int, chain_id: int):
    results = {
        "eth_blockNumber": hex(block_number),
        "eth_chainId": hex(chain_id),
    }

    class RPCHandler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            payload = json.loads(self.rfile.read(length) or b"{}")
            method = payload.get("method")
            print(method, flush=True)

            if method in results:
                body = {"jsonrpc": "2.0", "id": payload.get("id"), "result": results[method]}
            else:
                body = {
                    "jsonrpc": "2.0",
                    "id": payload.get("id"),
                    "error": {"code": -32601, "message": f"Method {method} not found"},
                }

            data = json.dumps(body).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, format, *args):
            pass

    return RPCHandler


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--fork", required=True)
    parser.add_argument("--port", type=int, required=True)
    parser.add_argument("--fork-block-number", type=int, default=None)
    args = parser.parse_args()

    chain_id = int(os.environ.get("HH_CHAIN_ID", "31337"))
    handler = build_handler(args.fork_block_number or 1, chain_id)
    server = ThreadingHTTPServer(("127.0.0.1", args.port), handler)

    print(f"Forking {args.fork}", flush=True)
    print(f"Started HTTP and WebSocket JSON-RPC server at http://127.0.0.1:{args.port}/", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
