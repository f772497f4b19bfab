#!/usr/bin/env python3
"""
Checkout E2E checks against a running grocery service.

Run:
  uvicorn grocery_service.app.main:app --port 8001
  python e2e_checkout.py

Optional env:
  SHOP_BASE=http://localhost:8001
  DEBUG=1

Uses the built-in sample catalog (no CATALOG_URL set).
"""

import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"

    BOX_LINE = "─"
    BOX_VERT = "│"
    BOX_TL = "┌"
    BOX_TR = "┐"
    BOX_BL = "└"
    BOX_BR = "┘"


def boxed(text: str, color: str):
    line = Style.BOX_LINE * (len(text) + 2)
    print(f"\n{color}{Style.BOX_TL}{line}{Style.BOX_TR}{Style.RESET}")
    print(f"{color}{Style.BOX_VERT} {Style.BOLD}{text}{Style.RESET}{color} {Style.BOX_VERT}{Style.RESET}")
    print(f"{color}{Style.BOX_BL}{line}{Style.BOX_BR}{Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

SHOP_BASE = os.getenv("SHOP_BASE", "http://localhost:8001")
DEBUG = os.getenv("DEBUG", "0").strip() in {"1", "true", "True", "YES", "yes"}

ADDRESS = {
    "name": "E2E Customer",
    "phone": "+91 9000000000",
    "address_line1": "42, Test Street",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411001",
    "address_type": "HOME",
}


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


@dataclass
class CheckResult:
    name: str
    success: bool
    details: str = ""
    scenario: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, path: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    debug(f"{method} {path} {kwargs.get('json', '')}")
    return requests.request(method, SHOP_BASE + path, **kwargs)


def call(method: str, path: str, expected: int = 200, **kwargs) -> Any:
    resp = http(method, path, **kwargs)
    if resp.status_code != expected:
        raise AssertionError(f"{method} {path}: expected HTTP {expected}, got {resp.status_code}, body={resp.text}")
    return resp.json()


def wait_for_health(timeout: int = 30) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", "/health").status_code == 200:
                ok("grocery service is healthy.")
                return True
        except requests.exceptions.RequestException as e:
            debug(f"not ready: {e}")
        time.sleep(1)
    fail(f"grocery service did not become healthy in {timeout} seconds.")
    return False


def check(name: str, scenario: str, actual, expected) -> CheckResult:
    success = actual == expected
    msg = f"expected {expected!r}, got {actual!r}"
    (ok if success else fail)(f"{name}: {msg}")
    return CheckResult(name, success, msg, scenario)


def ensure_address() -> Optional[str]:
    default = call("GET", "/api/v1/addresses/default")
    if default:
        return default["id"]
    return call("POST", "/api/v1/addresses", json=ADDRESS)["id"]


# =========================
# Scenarios
# =========================

def scenario_small_order() -> List[CheckResult]:
    scenario = "Scenario 1 - Small Order With Delivery Fee"
    boxed(scenario, Style.BLUE)
    results: List[CheckResult] = []
    try:
        call("DELETE", "/api/v1/cart")
        address_id = ensure_address()
        call("PUT", "/api/v1/checkout/address", json={"address_id": address_id})
        call("PUT", "/api/v1/checkout/payment-method", json={"payment_method_id": "cod"})
        call("PUT", "/api/v1/checkout/discount", json={"amount": 0})
        cart = call("POST", "/api/v1/cart/items", json={"product_id": "p_banana", "quantity": 2})
        results.append(check("Cart quantity", scenario, cart["total_quantity"], 2))

        summary = call("GET", "/api/v1/checkout")
        results.append(check("Delivery fee", scenario, summary["delivery_fee"], 49.0))
        results.append(check("Total amount", scenario, summary["total_amount"], 144.0))

        order_id = call("POST", "/api/v1/checkout/place-order")["order_id"]
        info(f"placed {order_id}")
        details = call("GET", f"/api/v1/orders/{order_id}")
        results.append(check("Stored total", scenario, details["order"]["total_amount"], 144.0))
        results.append(check("Payment status", scenario, details["order"]["payment_status"], "PENDING"))
        results.append(check("Cart emptied", scenario, call("GET", "/api/v1/cart")["lines"], []))

        for status in ("CONFIRMED", "SHIPPED", "DELIVERED"):
            order = call("PUT", f"/api/v1/orders/{order_id}/status", json={"status": status})
        results.append(check("Delivered", scenario, order["status"], "DELIVERED"))
        resp = http("PUT", f"/api/v1/orders/{order_id}/status", json={"status": "CANCELLED"})
        results.append(check("Cancel after delivery rejected", scenario, resp.status_code, 400))
    except Exception as e:
        fail(f"Exception: {e}")
        results.append(CheckResult("Small order flow", False, str(e), scenario))
    return results


def scenario_free_delivery() -> List[CheckResult]:
    scenario = "Scenario 2 - Free Delivery Over Threshold"
    boxed(scenario, Style.BLUE)
    results: List[CheckResult] = []
    try:
        call("DELETE", "/api/v1/cart")
        ensure_address()
        before = call("GET", "/api/v1/orders/stats")
        call("POST", "/api/v1/cart/items", json={"product_id": "p_rice"})
        call("PUT", "/api/v1/checkout/payment-method", json={"payment_method_id": "upi"})

        summary = call("GET", "/api/v1/checkout")
        results.append(check("Delivery fee", scenario, summary["delivery_fee"], 0.0))
        results.append(check("Total amount", scenario, summary["total_amount"], 605.0))

        order_id = call("POST", "/api/v1/checkout/place-order")["order_id"]
        order = call("GET", f"/api/v1/orders/{order_id}")["order"]
        results.append(check("Prepaid order is PAID", scenario, order["payment_status"], "PAID"))

        after = call("GET", "/api/v1/orders/stats")
        results.append(check("Order count grew", scenario, after["total_orders"], before["total_orders"] + 1))
        call("PUT", f"/api/v1/orders/{order_id}/status", json={"status": "CANCELLED"})
        stats = call("GET", "/api/v1/orders/stats")
        results.append(check("Cancelled order excluded from spend", scenario, stats["total_spent"], before["total_spent"]))
    except Exception as e:
        fail(f"Exception: {e}")
        results.append(CheckResult("Free delivery flow", False, str(e), scenario))
    return results


def scenario_empty_cart_rejected() -> List[CheckResult]:
    scenario = "Scenario 3 - Empty Cart Rejected"
    boxed(scenario, Style.BLUE)
    results: List[CheckResult] = []
    try:
        call("DELETE", "/api/v1/cart")
        before = call("GET", "/api/v1/orders/stats")["total_orders"]
        resp = http("POST", "/api/v1/checkout/place-order")
        results.append(check("HTTP status", scenario, resp.status_code, 400))
        results.append(check("Reason names empty cart", scenario, "empty cart" in resp.json().get("detail", ""), True))
        results.append(check("No order written", scenario, call("GET", "/api/v1/orders/stats")["total_orders"], before))
    except Exception as e:
        fail(f"Exception: {e}")
        results.append(CheckResult("Empty cart flow", False, str(e), scenario))
    return results


# =========================
# Summary
# =========================

def print_results(results: List[CheckResult]):
    print(f"\n{Style.BOLD}================ CHECK RESULTS ================ {Style.RESET}")
    per_scenario: Dict[str, Dict[str, int]] = {}
    for r in results:
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{'✅' if r.success else '❌'} {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
        agg = per_scenario.setdefault(r.scenario, {"total": 0, "passed": 0})
        agg["total"] += 1
        agg["passed"] += int(r.success)

    passed = sum(1 for r in results if r.success)
    failed = len(results) - passed
    print(f"Total checks: {len(results)}  |  Passed: {Style.GREEN}{passed}{Style.RESET}  |  Failed: {Style.RED}{failed}{Style.RESET}\n")
    for scen, agg in per_scenario.items():
        color = Style.GREEN if agg["passed"] == agg["total"] else Style.RED
        print(f"  {color}- {scen}: {agg['passed']}/{agg['total']} passed{Style.RESET}")

    if failed > 0:
        print(f"\n{Style.YELLOW}{Style.BOLD}Troubleshooting hints:{Style.RESET}")
        print(f"{Style.YELLOW}- Totals off: check FREE_DELIVERY_THRESHOLD, DELIVERY_FEE and PLATFORM_FEE.{Style.RESET}")
        print(f"{Style.YELLOW}- 404 on p_banana: the service is pointed at a remote CATALOG_URL.{Style.RESET}")
    return failed


def main():
    boxed("Grocery Service - Checkout E2E", Style.CYAN)
    if not wait_for_health():
        sys.exit(1)

    results: List[CheckResult] = []
    results.extend(scenario_small_order())
    results.extend(scenario_free_delivery())
    results.extend(scenario_empty_cart_rejected())
    sys.exit(1 if print_results(results) else 0)


if __name__ == "__main__":
    main()
