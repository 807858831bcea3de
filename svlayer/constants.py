# Daum/Kakao road-view tile grid (EPSG:5181).
TILE_SIZE = 512

# Host zoom 0 maps to the finest source level, see `source_zoom`.
MAX_ZOOM = 13

# metres per pixel, indexed by source zoom 0..13
RESOLUTIONS = (
    2048, 1024, 512, 256, 128, 64,
    32, 16, 8, 4, 2, 1, 0.5, 0.25
)

# Tile grid origin in projected metres (x, y).
ORIGIN = (-30000, -60000)

DAUM_PROJ = (
    "+proj=tmerc +lat_0=38 +lon_0=127 +k=1 +x_0=200000 +y_0=500000 "
    "+ellps=GRS80 +towgs84=0,0,0,0,0,0,0 +units=m +no_defs"
)

TILE_URL = "https://mts.daumcdn.net/api/v1/tile/PNG_RV02/v07_zxrda/latest/{zoom}/{x}/{y}.png"

# Seconds per source tile request. None waits forever.
DEFAULT_TIMEOUT = 30

# (west, south, east, north) in degrees
KOREA_BBOX = (124.5, 33.0, 131.9, 39.5)

# Snap fractional tile coordinates this close to an integer.
TILE_EPSILON = 1e-9

# Panorama lookups
DEFAULT_RADIUS = 50
PANO_TILE_SIZE = (512, 512)
PANO_WORLD_SIZE = (8192, 4096)
GOOGLE_WORLD_SIZE = (16384, 8192)

TENCENT_SEARCH_URL = "https://sv.map.qq.com/xf?output=json&lng={lng}&lat={lat}&r={radius}"
TENCENT_DETAIL_URL = "https://sv.map.qq.com/sv?output=json&svid={pano}"

KAKAO_NODE_URL = "https://rv.map.kakao.com/roadview-search/v2/node/{pano}?SERVICE=glpano"
KAKAO_SEARCH_URL = (
    "https://rv.map.kakao.com/roadview-search/v2/nodes"
    "?PX={lng}&PY={lat}&RAD={radius}&PAGE_SIZE=1&INPUT=wgs&TYPE=w&SERVICE=glpano"
)

GOOGLE_METADATA_URL = "https://maps.googleapis.com/maps/api/streetview/metadata"
GOOGLE_API_KEY_ENV = "GOOGLE_MAPS_API_KEY"
