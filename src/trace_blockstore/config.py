import io
import os
import ZConfig


_schema = None


def get_schema():
    global _schema
    if _schema is None:
        _schema = ZConfig.loadSchema(
            os.path.join(os.path.dirname(__file__), "schema.xml")
        )
    return _schema


class BaseStoreFactory:
    """ZConfig section datatype; ``open()`` builds the configured store."""

    def __init__(self, config):
        self.config = config
        self.name = config.getSectionName()

    def open(self):
        raise NotImplementedError


class S3StoreFactory(BaseStoreFactory):
    def open(self):
        from trace_blockstore.s3client import S3BlobStore

        config = self.config
        return S3BlobStore(
            bucket_name=config.bucket_name,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            use_ssl=config.s3_use_ssl,
            addressing_style=config.s3_addressing_style,
            connect_timeout=config.s3_connect_timeout,
            read_timeout=config.s3_read_timeout,
        )


class LocalStoreFactory(BaseStoreFactory):
    def open(self):
        from trace_blockstore.localstore import LocalBlobStore

        return LocalBlobStore(self.config.path)


def open_backend(config):
    """Build a BlockBackend from a loaded configuration."""
    from trace_blockstore.backend import BlockBackend

    return BlockBackend(
        config.store.open(),
        chunk_size=config.chunk_buffer_size,
        require_meta=config.require_meta,
        operation_timeout=config.operation_timeout,
    )


def config_from_string(text):
    config, _handler = ZConfig.loadConfigFile(get_schema(), io.StringIO(text))
    return config


def config_from_file(path):
    config, _handler = ZConfig.loadConfig(get_schema(), path)
    return config


def backend_from_string(text):
    return open_backend(config_from_string(text))


def backend_from_file(path):
    return open_backend(config_from_file(path))
