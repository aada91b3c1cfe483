import asyncio

from tlsgate.utils import asyncio_utils


def test_task_name():
    assert asyncio_utils.task_name("relay") == "relay"
    assert asyncio_utils.task_name("relay", ("127.0.0.1", 42313)) == "relay (127.0.0.1:42313)"
    assert asyncio_utils.task_name("relay", ("::1", 443, 0, 0)) == "relay ([::1]:443)"


async def test_create_task():
    task = asyncio_utils.create_task(
        asyncio.sleep(999), name="ttask", client=("127.0.0.1", 42313)
    )
    assert task.get_name() == "ttask (127.0.0.1:42313)"
    task.cancel()
    await asyncio.wait([task])

    task = asyncio_utils.create_task(asyncio.sleep(0), name="plain")
    assert task.get_name() == "plain"
    await task


async def test_set_current_task_name():
    async def ttask():
        asyncio_utils.set_current_task_name("newname", ("10.0.0.1", 1234))
        return asyncio.current_task().get_name()

    assert await asyncio.create_task(ttask()) == "newname (10.0.0.1:1234)"
