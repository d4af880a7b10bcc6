from enum import Enum

# Радиус Земли для Web Mercator и локальной касательной плоскости (метры)
EARTH_RADIUS_M = 6378137.0

# Половина стороны квадрата EPSG:3857 (метры)
WEB_MERCATOR_HALF_EXTENT_M = 20037508.342789244

# Предельная широта проекции Web Mercator (градусы)
WEB_MERCATOR_MAX_LAT_DEG = 85.0511287798

# Предельная долгота (градусы)
WORLD_LNG_HALF_SPAN_DEG = 180.0

WGS84_CODE = 4326
WEB_MERCATOR_CODE = 3857

# Базовый размер тайла высот (пикселей)
TILE_SIZE = 256

# Число уровней зума Terrarium (0..15)
TERRARIUM_NUM_LEVELS = 16

# Шаблон URL тайлов Terrarium (AWS Open Data)
TERRARIUM_URL_TEMPLATE = (
    'https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png'
)

# Смещение нуля в кодировке Terrarium (метры)
TERRARIUM_OFFSET_M = 32768.0

# Ожидаемое число каналов PNG тайла высот (RGBA)
TERRARIUM_CHANNELS = 4

# Максимальная глубина цвета на канал
TERRARIUM_MAX_BIT_DEPTH = 8

# Таймаут загрузки одного тайла (секунды)
TILE_FETCH_TIMEOUT_S = 10.0

# Максимум одновременно открытых загрузок тайлов
DOWNLOAD_CONCURRENCY = 40

# Пауза хост-цикла, если за шаг ни один тайл не завершился (секунды)
STEP_IDLE_SLEEP_S = 0.1

# Число попыток HTTP-запроса тайла
HTTP_RETRIES_DEFAULT = 1
HTTP_BACKOFF_FACTOR = 1.5

# Смещение нуля в выходном 16-битном растре высот
ZERO_ELEVATION_OFFSET = 32768
HEIGHT_RASTER_MIN = 0
HEIGHT_RASTER_MAX = 65535

# Вес слоя, заполняемого целиком
LAYER_WEIGHT_FULL = 255

# Высота строки полосы при перепроецировании (строк выходного растра)
REPROJECT_STRIP_ROWS = 512

# --- Опции кэша тайлов
# Каталог кэша (относительный путь размещается в LOCALAPPDATA)
ELEVATION_CACHE_DIR = '.cache/elevation'
# Имя каталога приложения в LOCALAPPDATA
APP_DIR_NAME = 'TerrariumTerrain'
# Размер очереди фоновой записи в кэш
TILE_WRITE_QUEUE_SIZE = 1000

# Каталог профилей TOML
PROFILES_DIR = 'configs/profiles'


class ResampleMethod(str, Enum):
    BILINEAR = 'bilinear'
    NEAREST = 'nearest'


# Порядок сплайна scipy.ndimage.map_coordinates для метода ресэмплинга
RESAMPLE_ORDER: dict[ResampleMethod, int] = {
    ResampleMethod.BILINEAR: 1,
    ResampleMethod.NEAREST: 0,
}
