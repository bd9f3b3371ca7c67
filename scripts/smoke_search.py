"""
Проверка работающего сервиса
Запускает индексацию, ждёт её завершения и выполняет несколько запросов
"""
import asyncio
import os
import sys

import httpx


API_URL = os.environ.get("API_URL", "http://localhost:8080")

QUERIES = ["главная", "контакты", "новости компании"]


async def start_indexing(client: httpx.AsyncClient) -> bool:
    """Запуск полной индексации"""
    print("\n📦 Запуск индексации...")
    response = await client.get(f"{API_URL}/api/startIndexing")
    result = response.json()
    if not result["result"]:
        print(f"✗ Ошибка: {result['error']}")
        return False
    print("✓ Индексация запущена")
    return True


async def wait_for_indexing(client: httpx.AsyncClient, poll_seconds: float = 2.0):
    """Ожидание окончания индексации"""
    while True:
        response = await client.get(f"{API_URL}/api/statistics")
        statistics = response.json()["statistics"]
        total = statistics["total"]
        print(f"   Сайтов: {total['sites']}, страниц: {total['pages']}, лемм: {total['lemmas']}")
        if not total["indexing"]:
            break
        await asyncio.sleep(poll_seconds)

    for site in statistics["detailed"]:
        line = f"   {site['name']}: {site['status']}"
        if site["error"]:
            line += f" ({site['error']})"
        print(line)


async def search(client: httpx.AsyncClient, query: str):
    """Поиск по всем сайтам"""
    print(f"\n🔍 Поиск: '{query}'")
    response = await client.get(f"{API_URL}/api/search", params={"query": query, "limit": 5})
    result = response.json()

    if not result["result"]:
        print(f"   ✗ Ошибка: {result['error']}")
        return

    print(f"   Найдено: {result['count']} страниц")
    for i, item in enumerate(result["data"][:3], 1):
        print(f"   {i}. {item['site']}{item['uri']} | {item['relevance']:.3f}")
        print(f"      {item['snippet'][:120]}")


async def main():
    print("=" * 60)
    print("🚀 Проверка поискового сервиса")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            response = await client.get(f"{API_URL}/health", timeout=5.0)
        except httpx.HTTPError as e:
            print(f"✗ Ошибка подключения: {e}")
            sys.exit(1)
        if response.status_code != 200:
            print("✗ API недоступен")
            sys.exit(1)

        if await start_indexing(client):
            await wait_for_indexing(client)

        queries = sys.argv[1:] or QUERIES
        for query in queries:
            await search(client, query)


if __name__ == "__main__":
    asyncio.run(main())
