from trace_blockstore import keys

import uuid


BLOCK_ID = uuid.UUID("6f3a1d2e-9b4c-4c55-8a51-2d0f4e1b7c90")


class TestKeyScheme:
    def test_root_path(self):
        assert keys.root_path(BLOCK_ID, "tenant-a") == (
            "tenant-a/6f3a1d2e-9b4c-4c55-8a51-2d0f4e1b7c90"
        )

    def test_component_keys(self):
        root = "tenant-a/6f3a1d2e-9b4c-4c55-8a51-2d0f4e1b7c90"
        assert keys.meta_key(BLOCK_ID, "tenant-a") == f"{root}/meta.json"
        assert keys.bloom_key(BLOCK_ID, "tenant-a") == f"{root}/bloom"
        assert keys.index_key(BLOCK_ID, "tenant-a") == f"{root}/index"
        assert keys.object_key(BLOCK_ID, "tenant-a") == f"{root}/data"

    def test_keys_are_deterministic(self):
        assert keys.meta_key(BLOCK_ID, "t") == keys.meta_key(
            uuid.UUID(str(BLOCK_ID)), "t"
        )

    def test_distinct_blocks_do_not_collide(self):
        other = uuid.uuid4()
        assert keys.root_path(BLOCK_ID, "t") != keys.root_path(other, "t")
        assert keys.root_path(BLOCK_ID, "t") != keys.root_path(BLOCK_ID, "u")

    def test_tenant_prefix(self):
        assert keys.tenant_prefix("tenant-a") == "tenant-a/"
