"""Key layout of a block: ``<tenant>/<block-id>/{meta.json,bloom,index,data}``."""

DELIMITER = "/"

META_NAME = "meta.json"
BLOOM_NAME = "bloom"
INDEX_NAME = "index"
OBJECT_NAME = "data"


def root_path(block_id, tenant_id):
    return f"{tenant_id}{DELIMITER}{block_id}"


def meta_key(block_id, tenant_id):
    return f"{root_path(block_id, tenant_id)}{DELIMITER}{META_NAME}"


def bloom_key(block_id, tenant_id):
    return f"{root_path(block_id, tenant_id)}{DELIMITER}{BLOOM_NAME}"


def index_key(block_id, tenant_id):
    return f"{root_path(block_id, tenant_id)}{DELIMITER}{INDEX_NAME}"


def object_key(block_id, tenant_id):
    return f"{root_path(block_id, tenant_id)}{DELIMITER}{OBJECT_NAME}"


def tenant_prefix(tenant_id):
    return f"{tenant_id}{DELIMITER}"
