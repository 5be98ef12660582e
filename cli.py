#!/usr/bin/env python3
"""
特质经验引擎 — 命令行工具
用法:
  python3 cli.py status                  # 查看状态
  python3 cli.py score TASK USER         # 为任务下未评分会话发放经验
  python3 cli.py score-session ID TASK USER  # 单会话立即评分
  python3 cli.py sweep USER TASK...      # 批量扫描多个任务
  python3 cli.py wallet USER             # 查看钱包
  python3 cli.py ledger SESSION          # 查看会话账本
  python3 cli.py demo                    # 运行演示
"""

import os
import sys

import httpx

API = os.environ.get("TRAIT_XP_API", "http://127.0.0.1:8890")


def fetch(path: str) -> dict:
    try:
        r = httpx.get(f"{API}{path}", timeout=10)
        return r.json()
    except httpx.HTTPError as e:
        print(f"❌ 无法连接服务: {e}")
        print("   请确保服务正在运行: python -m trait_xp.core")
        sys.exit(1)


def post(path: str, data=None) -> dict:
    try:
        r = httpx.post(f"{API}{path}", json=data, timeout=10)
        return r.json()
    except httpx.HTTPError as e:
        print(f"❌ 请求失败: {e}")
        sys.exit(1)


def print_result(d: dict) -> None:
    if "error" in d:
        print(f"  ❌ {d['error']}")
        return
    print()
    for r in d["per_trait_results"]:
        seed = f"  — {r['narrative_seed']}" if r["narrative_seed"] else ""
        print(f"  {r['trait']:<14} +{r['final_xp']} XP{seed}")
    print()
    print(f"  ⭐ 合计 {d['total_xp']} XP  💰 {d['tokens']} 代币")
    print()


def cmd_status():
    d = fetch("/api/status")
    s = d["system"]
    stats = d["exp_stats"]
    print()
    print(f"  {s['name']} v{s['version']}")
    print(f"  状态: {'🟢 运行中' if s['running'] else '🔴 停止'}")
    print(f"  已评分会话: {stats['sessions_scored']}")
    print(f"  累计经验: {stats['total_xp_awarded']} XP")
    print(f"  累计铸造: {stats['total_minted']} 代币 (每 {stats['xp_per_token']} XP 1 枚)")
    print()


def cmd_score(task_id: str, user_id: str):
    print_result(post(f"/api/tasks/{task_id}/score", {"user_id": user_id}))


def cmd_score_session(session_id: str, task_id: str, user_id: str):
    print_result(post(f"/api/sessions/{session_id}/score", {"task_id": task_id, "user_id": user_id}))


def cmd_sweep(user_id: str, task_ids: list[str]):
    d = post("/api/sweep", {"user_id": user_id, "task_ids": task_ids})
    print()
    for o in d["outcomes"]:
        if o["success"]:
            r = o["result"]
            print(f"  ✅ {o['task_id']}: {r['total_xp']} XP, {r['tokens']} 代币")
        else:
            print(f"  ❌ {o['task_id']}: {o['error']}")
    print()


def cmd_wallet(user_id: str):
    d = fetch(f"/api/wallets/{user_id}")
    print()
    print(f"  💰 {d['user_id']} 余额: {d['balance']} 代币")
    print()
    for m in d["mints"]:
        task = m["meta"].get("source_task_id") or "N/A"
        traits = ", ".join(f"{k} {v}" for k, v in m["per_trait_totals"].items())
        print(f"  +{m['amount']}  任务 {task}  {m['timestamp']}")
        if traits:
            print(f"      {traits}")
    print()


def cmd_ledger(session_id: str):
    d = fetch(f"/api/sessions/{session_id}/ledger")
    print()
    if not d["scored"]:
        print("  该会话尚未评分。")
        print()
        return
    for e in d["entries"]:
        print(f"  {e['trait']:<14} base {e['base_xp']:>3}  final {e['final_xp']:>3}")
    print()


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return

    cmd = sys.argv[1].lower()
    args = sys.argv[2:]

    if cmd == "status":
        cmd_status()
    elif cmd == "score" and len(args) >= 2:
        cmd_score(args[0], args[1])
    elif cmd == "score-session" and len(args) >= 3:
        cmd_score_session(args[0], args[1], args[2])
    elif cmd == "sweep" and len(args) >= 2:
        cmd_sweep(args[0], args[1:])
    elif cmd == "wallet" and args:
        cmd_wallet(args[0])
    elif cmd == "ledger" and args:
        cmd_ledger(args[0])
    elif cmd == "demo":
        import asyncio
        from demo import run_demo
        asyncio.run(run_demo())
    else:
        print(__doc__)


if __name__ == "__main__":
    main()
