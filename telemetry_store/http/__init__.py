"""HTTP interface: request and response models and the aiohttp routes."""