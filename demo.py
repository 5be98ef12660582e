"""
演示模拟器
模拟一个任务下的几次专注会话，展示评分、批量补评与幂等
需要先启动服务: python -m trait_xp.core
"""

import asyncio
import uuid
from datetime import datetime

import httpx


API_BASE = "http://127.0.0.1:8890"

# 一个任务的会话剧本
# (标签, 时长分钟, 微事件, 自我报告)
TASK_SCENARIO = [
    ("09:00 早起开工", 25, [], {"startTiming": "early"}),
    ("10:00 卡住了", 40, ["distraction", "urge_overcome", "approach_change"],
     {"urgeLevel": "high", "switchUnblocked": True}),
    ("14:00 三天后回归", 15, ["distraction", "distraction"],
     {"returnGapDays": 3, "startTiming": "delayed"}),
    ("20:00 被提醒才开始", 55, ["urge_overcome", "urge_overcome", "break"],
     {"prompted": True}),
]

CLASSIFICATION = {
    "task_type": "scheduled",
    "friction_level": "high",
    "stakes": "medium",
    "discomfort_level": "mild",
}


async def run_demo():
    """运行完整演示"""
    print("=" * 60)
    print("  特质经验引擎 — 演示模式")
    print("=" * 60)
    print()

    user_id = "demo-user"
    task_id = f"demo-task-{uuid.uuid4().hex[:6]}"

    async with httpx.AsyncClient(timeout=30) as client:
        try:
            resp = await client.get(f"{API_BASE}/api/status")
            status = resp.json()
            print(f"  ⚔️ 服务在线: {status['system']['name']}")
            print()
        except httpx.HTTPError as e:
            print(f"  ❌ 服务未运行: {e}")
            print("  请先启动服务: python -m trait_xp.core")
            return

        resp = await client.put(f"{API_BASE}/api/tasks/{task_id}/classification", json=CLASSIFICATION)
        print(f"  📋 任务分类: {resp.json()['classification']}")
        print()

        # 第一次会话结束时立即评分，其余留给任务完成时的批量补评
        for i, (label, minutes, kinds, report) in enumerate(TASK_SCENARIO):
            session_id = str(uuid.uuid4())
            now = datetime.now().isoformat()
            await client.post(f"{API_BASE}/api/sessions", json={
                "session_id": session_id,
                "task_id": task_id,
                "user_id": user_id,
                "duration_minutes": minutes,
                "events": [{"type": k, "timestamp": now} for k in kinds],
                "self_report": report,
            })
            if i == 0:
                resp = await client.post(f"{API_BASE}/api/sessions/{session_id}/score", json={
                    "task_id": task_id, "user_id": user_id,
                })
                r = resp.json()
                print(f"  {label:<16} {minutes:>3}min  立即评分 +{r['total_xp']} XP, {r['tokens']} 代币")
            else:
                print(f"  {label:<16} {minutes:>3}min  待补评")
            await asyncio.sleep(0.2)

        print()
        resp = await client.post(f"{API_BASE}/api/tasks/{task_id}/score", json={"user_id": user_id})
        r = resp.json()
        print(f"  ✅ 任务完成补评: {len(r['session_ids'])} 个会话, +{r['total_xp']} XP, {r['tokens']} 代币")
        for trait, xp in r["per_trait_totals"].items():
            print(f"     {trait:<14} {xp}")

        resp = await client.post(f"{API_BASE}/api/tasks/{task_id}/score", json={"user_id": user_id})
        r = resp.json()
        print(f"  🔁 再次补评: +{r['total_xp']} XP, {r['tokens']} 代币 (应为 0)")

        resp = await client.get(f"{API_BASE}/api/wallets/{user_id}")
        print()
        print(f"  💰 钱包余额: {resp.json()['balance']} 代币")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(run_demo())
