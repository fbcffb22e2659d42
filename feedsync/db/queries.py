"""
SQL statements for the local catalog store.

This module contains the SQLite schema and every statement used by
CatalogStore:
- Schema creation (tables and indexes)
- Product, variant and image upserts
- Feed projection and product listing reads
- Sync log and export history access
- Cleanup and validation scans
"""

# === SCHEMA ===

CREATE_TABLE_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY,
        shopify_id TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        handle TEXT,
        body_html TEXT,
        vendor TEXT,
        product_type TEXT,
        created_at TEXT,
        updated_at TEXT,
        published_at TEXT,
        status TEXT,
        tags TEXT,
        seo_title TEXT,
        seo_description TEXT,
        google_product_category TEXT,
        condition_value TEXT DEFAULT 'new',
        brand TEXT,
        gtin TEXT,
        mpn TEXT,
        sync_status TEXT DEFAULT 'pending',
        last_synced TEXT,
        created_locally TEXT,
        updated_locally TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS variants (
        id INTEGER PRIMARY KEY,
        shopify_id TEXT UNIQUE NOT NULL,
        product_id TEXT NOT NULL,
        title TEXT,
        price REAL,
        compare_at_price REAL,
        sku TEXT,
        position INTEGER,
        inventory_policy TEXT,
        option1 TEXT,
        option2 TEXT,
        option3 TEXT,
        created_at TEXT,
        updated_at TEXT,
        barcode TEXT,
        grams INTEGER,
        weight REAL,
        weight_unit TEXT,
        inventory_item_id TEXT,
        inventory_quantity INTEGER,
        requires_shipping BOOLEAN,
        created_locally TEXT,
        updated_locally TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS images (
        id INTEGER PRIMARY KEY,
        shopify_id TEXT UNIQUE NOT NULL,
        product_id TEXT NOT NULL,
        position INTEGER,
        src TEXT,
        width INTEGER,
        height INTEGER,
        alt TEXT,
        created_at TEXT,
        updated_at TEXT,
        created_locally TEXT,
        updated_locally TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sync_type TEXT NOT NULL,
        status TEXT NOT NULL,
        products_processed INTEGER,
        products_added INTEGER,
        products_updated INTEGER,
        products_skipped INTEGER,
        errors_count INTEGER,
        start_time TEXT,
        end_time TEXT,
        duration_seconds INTEGER,
        error_message TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS export_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        filename TEXT NOT NULL,
        products_count INTEGER,
        file_size INTEGER,
        filters TEXT,
        status TEXT DEFAULT 'completed',
        created_at TEXT
    )
    """,
]

CREATE_INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_products_shopify_id ON products(shopify_id)",
    "CREATE INDEX IF NOT EXISTS idx_products_updated_at ON products(updated_at)",
    "CREATE INDEX IF NOT EXISTS idx_variants_product_id ON variants(product_id)",
    "CREATE INDEX IF NOT EXISTS idx_variants_price ON variants(price)",
    "CREATE INDEX IF NOT EXISTS idx_images_product_id ON images(product_id)",
    "CREATE INDEX IF NOT EXISTS idx_sync_logs_created_at ON sync_logs(created_at)",
]

REQUIRED_TABLES = ("products", "variants", "images", "sync_logs", "export_history")

TABLE_EXISTS_QUERY = "SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"

# === UPSERTS ===

UPSERT_PRODUCT = """
INSERT INTO products (
    shopify_id, title, handle, body_html, vendor, product_type,
    created_at, updated_at, published_at, status, tags,
    seo_title, seo_description, google_product_category, brand,
    sync_status, created_locally, updated_locally
) VALUES (
    :shopify_id, :title, :handle, :body_html, :vendor, :product_type,
    :created_at, :updated_at, :published_at, :status, :tags,
    :seo_title, :seo_description, :google_product_category, :brand,
    :sync_status, :now, :now
)
ON CONFLICT(shopify_id) DO UPDATE SET
    title = excluded.title,
    handle = excluded.handle,
    body_html = excluded.body_html,
    vendor = excluded.vendor,
    product_type = excluded.product_type,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at,
    published_at = excluded.published_at,
    status = excluded.status,
    tags = excluded.tags,
    seo_title = excluded.seo_title,
    seo_description = excluded.seo_description,
    google_product_category = excluded.google_product_category,
    brand = excluded.brand,
    sync_status = excluded.sync_status,
    updated_locally = excluded.updated_locally
"""

DELETE_SIBLING_VARIANTS = """
DELETE FROM variants WHERE product_id = :product_id AND shopify_id != :shopify_id
"""

UPSERT_VARIANT = """
INSERT INTO variants (
    shopify_id, product_id, title, price, compare_at_price, sku, position,
    inventory_policy, option1, option2, option3, created_at, updated_at,
    barcode, grams, weight, weight_unit, inventory_item_id,
    inventory_quantity, requires_shipping, created_locally, updated_locally
) VALUES (
    :shopify_id, :product_id, :title, :price, :compare_at_price, :sku, :position,
    :inventory_policy, :option1, :option2, :option3, :created_at, :updated_at,
    :barcode, :grams, :weight, :weight_unit, :inventory_item_id,
    :inventory_quantity, :requires_shipping, :now, :now
)
ON CONFLICT(shopify_id) DO UPDATE SET
    product_id = excluded.product_id,
    title = excluded.title,
    price = excluded.price,
    compare_at_price = excluded.compare_at_price,
    sku = excluded.sku,
    position = excluded.position,
    inventory_policy = excluded.inventory_policy,
    option1 = excluded.option1,
    option2 = excluded.option2,
    option3 = excluded.option3,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at,
    barcode = excluded.barcode,
    grams = excluded.grams,
    weight = excluded.weight,
    weight_unit = excluded.weight_unit,
    inventory_item_id = excluded.inventory_item_id,
    inventory_quantity = excluded.inventory_quantity,
    requires_shipping = excluded.requires_shipping,
    updated_locally = excluded.updated_locally
"""

DELETE_SIBLING_IMAGES = """
DELETE FROM images WHERE product_id = :product_id AND shopify_id != :shopify_id
"""

UPSERT_IMAGE = """
INSERT INTO images (
    shopify_id, product_id, position, src, width, height, alt,
    created_at, updated_at, created_locally, updated_locally
) VALUES (
    :shopify_id, :product_id, :position, :src, :width, :height, :alt,
    :created_at, :updated_at, :now, :now
)
ON CONFLICT(shopify_id) DO UPDATE SET
    product_id = excluded.product_id,
    position = excluded.position,
    src = excluded.src,
    width = excluded.width,
    height = excluded.height,
    alt = excluded.alt,
    created_at = excluded.created_at,
    updated_at = excluded.updated_at,
    updated_locally = excluded.updated_locally
"""

MARK_PRODUCT_SYNCED = """
UPDATE products
SET sync_status = 'synced', last_synced = :now, updated_locally = :now
WHERE shopify_id = :shopify_id
"""

PRODUCT_EXISTS = "SELECT 1 FROM products WHERE shopify_id = :shopify_id LIMIT 1"

# === FEED PROJECTION ===

# {conditions} is replaced by the AND-joined filter clauses built by CatalogStore
FEED_ROWS_QUERY_TEMPLATE = """
WITH ranked_variants AS (
    SELECT
        v.*,
        ROW_NUMBER() OVER (PARTITION BY v.product_id ORDER BY v.price ASC, v.id ASC) AS price_rank
    FROM variants v
    WHERE v.price > 0
)
SELECT
    p.shopify_id AS product_id,
    p.title,
    p.handle,
    p.body_html,
    p.vendor,
    p.product_type,
    p.status,
    p.tags,
    p.created_at,
    p.updated_at,
    p.published_at,
    p.seo_title,
    p.seo_description,
    p.google_product_category,
    p.brand,
    p.gtin,
    p.mpn,
    rv.shopify_id AS variant_id,
    rv.title AS variant_title,
    rv.price,
    rv.compare_at_price,
    rv.sku,
    rv.barcode,
    rv.option1,
    rv.option2,
    rv.option3,
    rv.weight,
    rv.weight_unit,
    rv.inventory_quantity,
    i.src AS image_src,
    i.alt AS image_alt
FROM products p
INNER JOIN ranked_variants rv ON rv.product_id = p.shopify_id AND rv.price_rank = 1
LEFT JOIN images i ON i.product_id = p.shopify_id
WHERE p.status = 'active'{conditions}
ORDER BY p.title ASC, p.shopify_id ASC
"""

# === PRODUCT LISTING ===

# {search} is replaced by the optional search clause
PRODUCTS_PAGE_QUERY_TEMPLATE = """
SELECT
    p.*,
    COUNT(v.id) AS variant_count,
    MIN(v.price) AS min_price,
    MAX(v.price) AS max_price,
    COALESCE(SUM(v.inventory_quantity), 0) AS total_inventory
FROM products p
LEFT JOIN variants v ON v.product_id = p.shopify_id
{search}
GROUP BY p.id
ORDER BY p.updated_locally DESC, p.id DESC
LIMIT :limit OFFSET :offset
"""

PRODUCTS_COUNT_QUERY_TEMPLATE = "SELECT COUNT(*) AS total FROM products p {search}"

PRODUCTS_SEARCH_CLAUSE = """
WHERE LOWER(p.title) LIKE :search OR LOWER(p.vendor) LIKE :search OR LOWER(p.tags) LIKE :search
"""

# === STATISTICS ===

STATISTICS_QUERY = """
SELECT
    (SELECT COUNT(*) FROM products) AS total_products,
    (SELECT COUNT(*) FROM variants) AS total_variants,
    (SELECT COUNT(*) FROM products WHERE status = 'active') AS published_products,
    (SELECT MAX(last_synced) FROM products) AS last_sync_time,
    (SELECT AVG(price) FROM variants WHERE price > 0) AS avg_price,
    (SELECT COALESCE(SUM(inventory_quantity), 0) FROM variants) AS total_inventory
"""

LAST_SYNC_WATERMARK_QUERY = """
SELECT MAX(updated_at) AS last_sync FROM products WHERE sync_status = 'synced'
"""

# === SYNC LOGS ===

INSERT_SYNC_LOG = """
INSERT INTO sync_logs (
    sync_type, status, products_processed, products_added, products_updated,
    products_skipped, errors_count, start_time, end_time, duration_seconds,
    error_message, created_at
) VALUES (
    :sync_type, :status, :products_processed, :products_added, :products_updated,
    :products_skipped, :errors_count, :start_time, :end_time, :duration_seconds,
    :error_message, :created_at
)
"""

SYNC_LOGS_PAGE_QUERY = """
SELECT * FROM sync_logs ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset
"""

SYNC_LOGS_COUNT_QUERY = "SELECT COUNT(*) AS total FROM sync_logs"

# === EXPORT HISTORY ===

INSERT_EXPORT_RECORD = """
INSERT INTO export_history (filename, products_count, file_size, filters, status, created_at)
VALUES (:filename, :products_count, :file_size, :filters, :status, :created_at)
"""

EXPORT_HISTORY_QUERY = """
SELECT * FROM export_history ORDER BY created_at DESC, id DESC LIMIT :limit
"""

# === CLEANUP ===

DELETE_STALE_UNSYNCED_PRODUCTS = """
DELETE FROM products WHERE updated_locally < :cutoff AND sync_status != 'synced'
"""

DELETE_STALE_PRODUCTS = "DELETE FROM products WHERE updated_locally < :cutoff"

DELETE_ORPHAN_VARIANTS = """
DELETE FROM variants WHERE product_id NOT IN (SELECT shopify_id FROM products)
"""

DELETE_ORPHAN_IMAGES = """
DELETE FROM images WHERE product_id NOT IN (SELECT shopify_id FROM products)
"""

# === VALIDATION SCANS ===

PRODUCTS_WITHOUT_VARIANTS_QUERY = """
SELECT p.shopify_id, p.title
FROM products p
LEFT JOIN variants v ON v.product_id = p.shopify_id
WHERE v.id IS NULL
ORDER BY p.id
"""

INVALID_PRICE_VARIANTS_QUERY = """
SELECT v.shopify_id, v.product_id, v.sku, v.price
FROM variants v
WHERE v.price IS NULL OR v.price <= 0
ORDER BY v.id
"""

PRODUCTS_WITHOUT_IMAGES_QUERY = """
SELECT p.shopify_id, p.title
FROM products p
LEFT JOIN images i ON i.product_id = p.shopify_id
WHERE i.id IS NULL
ORDER BY p.id
"""

DUPLICATE_SKUS_QUERY = """
SELECT sku, COUNT(*) AS count
FROM variants
WHERE sku IS NOT NULL AND sku != ''
GROUP BY sku
HAVING COUNT(*) > 1
ORDER BY count DESC, sku
"""
