#!/usr/bin/env python3
"""
并发行为探测脚本
用于验证变换端点的实际并发处理能力，以及限流后的原图重定向
"""

import asyncio
import os
import sys
import time
from datetime import datetime

import aiohttp

from magick_transform.params import image_url


def _now() -> str:
    return datetime.now().strftime('%H:%M:%S.%f')[:-3]


async def send_request(session, request_id, url, accept):
    """发送单个变换请求（不跟随重定向）"""
    start_time = time.time()

    try:
        print(f"[{_now()}] 请求{request_id}: 开始发送")

        async with session.get(url, headers={"Accept": accept}, allow_redirects=False) as response:
            body = await response.read()
            elapsed = time.time() - start_time
            status = response.status

            print(f"[{_now()}] 请求{request_id}: "
                  f"完成 (状态: {status}, 类型: {response.headers.get('Content-Type')}, "
                  f"大小: {len(body)}B, 耗时: {elapsed:.2f}s)")

            return {
                'request_id': request_id,
                'status': status,
                'location': response.headers.get('Location'),
                'duration': elapsed,
                'start': start_time
            }
    except Exception as e:
        elapsed = time.time() - start_time
        print(f"[{_now()}] 请求{request_id}: "
              f"失败 ({str(e)}, 耗时: {elapsed:.2f}s)")
        return {
            'request_id': request_id,
            'status': 'error',
            'error': str(e),
            'duration': elapsed
        }


async def probe_concurrent_requests(num_requests, url, accept="image/avif,image/webp,*/*"):
    """测试并发请求行为"""
    print(f"\n{'='*70}")
    print(f"测试场景: 同时发送 {num_requests} 个请求")
    print(f"目标URL: {url}")
    print(f"{'='*70}\n")

    async with aiohttp.ClientSession() as session:
        tasks = [
            send_request(session, i+1, url, accept)
            for i in range(num_requests)
        ]

        test_start = time.time()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        test_duration = time.time() - test_start

        print(f"\n{'='*70}")
        print(f"测试结果分析")
        print(f"{'='*70}")
        print(f"总耗时: {test_duration:.2f}s")

        successful = [r for r in results if isinstance(r, dict) and r.get('status') == 200]
        redirected = [r for r in results if isinstance(r, dict) and r.get('status') == 302]
        print(f"成功: {len(successful)}/{num_requests}")
        print(f"重定向到原图: {len(redirected)}/{num_requests}")
        if redirected:
            print(f"  重定向目标: {redirected[0]['location']}")
            print(f"  (生产环境下超过 MAX_NUMBER_OF_ATTEMPTS 的请求会被限流)")

        if successful:
            durations = [r['duration'] for r in successful]
            avg_duration = sum(durations) / len(durations)
            print(f"平均响应时间: {avg_duration:.2f}s")
            print(f"最快响应: {min(durations):.2f}s")
            print(f"最慢响应: {max(durations):.2f}s")

            if test_duration < avg_duration * 1.5:
                print(f"  ✅ 总时间({test_duration:.2f}s) ≈ 单个请求时间({avg_duration:.2f}s) → 并行处理")
            else:
                print(f"  ⚠️  总时间({test_duration:.2f}s) > 单个请求时间({avg_duration:.2f}s) → 存在排队或资源竞争")


async def main():
    """主测试函数"""
    base_url = os.getenv("BASE_URL", "http://localhost:8000")
    image_path = sys.argv[1] if len(sys.argv) > 1 else "test_image.jpg"
    endpoint = os.getenv("ENDPOINT_NAME", "images")

    print(f"""
准备工作:
- 确保API服务运行在 {base_url}
- 在 SOURCE_DIR 中放置测试图片 {image_path}
  例如: magick -size 800x600 xc:blue images/{image_path}
""")

    await probe_concurrent_requests(
        num_requests=3,
        url=base_url + image_url(image_path, endpoint=endpoint, width=400, fit="cover"),
    )

    await asyncio.sleep(2)

    await probe_concurrent_requests(
        num_requests=10,
        url=base_url + image_url(image_path, endpoint=endpoint, width=300, height=300, fit="crop", sharpen=2),
    )


if __name__ == "__main__":
    asyncio.run(main())
