"""
Page type classification rules.
Each rule is (name, pattern); the first pattern matching a path wins.
Sites may carry their own rules, otherwise the built-in rules for the site's domain apply.
"""
import re
from typing import Any, Iterable, Optional, Sequence, Tuple
from urllib.parse import urlparse

OTHER_PAGE_TYPE = "other | Other Pages"

PageTypeRule = Tuple[str, str]

PAGE_TYPE_RULES = {
    "bulk.com": (
        ("homepage | Homepage", r"^/[a-z]{2}/?$"),
        ("blog | Reviews and Blog Content", r"^/[a-z]{2}/(bulk-reviews|blog-[a-z0-9\-]+)/?$"),
        ("search | Search Results", r"^/[a-z]{2}/(search|catalogsearch/result|search/go)/?$"),
        ("landingpage | Goal-Based Landing Pages", r"^/[a-z]{2}/(build-muscle-goal|change-your-diet-goal|perda-de-peso-2|dieta|gluten-free-diet|diet-protein-shakes)/?$"),
        ("landingpage | Affiliate and Referral Programs", r"^/[a-z]{2}/(programma-di-affiliazione|affiliate-programm|affiliates|programme-d-affilies|programme-de-parrainage|affiliate-scheme|affiliate-programma)/?$"),
        ("landingpage | Membership and Loyalty", r"^/[a-z]{2}/(boost/membership/info|mention-me/dashboard)/?$"),
        ("productdetail | Product Detail Pages", r"^/[a-z]{2}/(products/[a-z0-9\-]+/[a-z0-9\-]+(/[a-z0-9\-]+)?|catalog/product/view/id/[0-9]+|[a-z0-9\-]+\.html)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Protein Category", r"^/[a-z]{2}/(protein|proteine|odzywki-bialkowe|proteinas)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Vegan Category", r"^/[a-z]{2}/vegan(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Sports Nutrition Category", r"^/[a-z]{2}/(sports-nutrition|alimentazione-sportiva|sportnahrung|nutrition-sportive|sport-voeding|idrottsnutrition|sportsernaering|nutricion-deportiva|nutricao-desporto|odzywki-sportowe)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Health Wellbeing Category", r"^/[a-z]{2}/(health-wellbeing|saude-e-bem-estar|salute-e-benessere|halsa-och-valbefinnande|gesundheit-wohlbefinden|gezondheid-en-welzijn|sante-et-bien-etre|godt-helbred|salud-y-bienestar|zdrowie-i-dobre-samopoczucie)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Vitamins Minerals Category", r"^/[a-z]{2}/(vitamins|sante-et-bien-etre/multivitamins|gezondheid-en-welzijn/multivitaminen|salud-y-bienestar/multivitaminas|godt-helbred/multivitaminer)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Food Category", r"^/[a-z]{2}/(foods|nahrungsmittel|alimenti-2|livsmedel|voeding|produits-alimentaires|alimentos-saudaveis|madvarer|zywnosc|alimentacion)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Weight Loss Category", r"^/[a-z]{2}/(weight-loss|weight-loss-goal|gewichtsverlust|utrata-wagi|gewichtsafname|regime|vaegttab|viktminskning|perdita-di-peso)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Accessories", r"^/[a-z]{2}/(accessories|accessoires|zubehoer|accessori|accesorii|akcesoria|akcesoria-i-odziez|tilbehoer|tillbehoer|prislusenstvi|accessories-clothing|accessoires-en-kleding|vetements-accessoires|accessori-abbigliamento|ropa-y-accessorios|zubehor-und-bekleidung|zubehor-bekleidung|serie/accessories|selectionner-par-gamme/accessories|shoppa-via-produktutbud/accessories|shop-per-assortiment/accessories|selezione-per-gamma/accessories|shop-by-range/accessories|produktreihe/accessories|shop-efter-serie/accessories|comprar-por-gama/accessories|roupa-desportiva-e-acessorios|klader-och-tillbehor|tilbehor-toj|ropa-de-gimnasia)(/[a-z0-9\-]+)*/?$"),
        ("productlistpage | Daily Offers and Deals", r"^/[a-z]{2}/(todays-offers|deal-of-the-day|offerta-del-giorno|dagens-tilbud|dagens-erbjudande|oferta-del-dia|special-sale|black-friday-rea|black-friday-sale|deal-des-tages|deal-du-jour|aanbod-van-de-dag|oferta-dnia)(-eu)?/?$"),
        ("productlistpage | General Product Collections", r"^/(collections|shop)/?$"),
        ("productlistpage | Curated Collections and New Products", r"^/[a-z]{2}/(unsere-favoriten|nouveaux-produits|nostri-preferiti|new-products|best-sellers-[a-z]{2}|vores-favoritter|vara-favoriter|nuestros-favoritos|nieuwe-producten|nuevos-productos|nuovi-prodotti|top-rated-products|de-retour-en-stock|out-stock|offerta-do-dia|geschenke-fur-veganer|saldi-black-friday|cyber-monday-rea|saffron-barker|selectionner-par-gamme|produktreihe|compare-pre-workout|first-time-orders|premiere-commande|studentenrabatt|freegift-[a-z]{2}|perda-de-peso-2/batidos-dieteticos)/?$"),
        ("productlistpage | Special Promotions and Offers", r"^/[a-z]{2}/(freewhey|double-[a-z]{2}|code-confirmation|code-exclusions)/?$"),
        ("checkout | Cart Checkout", r"^/([a-z]{2}/)*((ru/)?checkout|paypal/express/review|shop/checkout)/.*$"),
        ("accountandorders | Order Tracking", r"^/[a-z]{2}/trackmyorder/?$"),
        ("accountandorders | My Account", r"^/[a-z]{2}/(customer(/.*)?|sales/order/.*|reward/customer/.*)/?$"),
        ("about | About Us", r"^/[a-z]{2}/(about|sobre-nosotros|uber-uns|sobre-nos)/?$"),
        ("about | Sustainability", r"^/[a-z]{2}/ourplanet/?$"),
        ("support | Customer Support", r"^/[a-z]{2}/(contact|referafriend|recommander|invita-un-amico|student-discount|etudiants-promotions|descuentos-estudiantes|spend-save|bulk-boost|best-sellers|our-favourites|nos-favoris|onze-favorieten|a-propos-de-nous|delivery-faq|help|faq|support|contact-us|food-safety|clothing-returns)/?$"),
        ("support | Email Preferences and Notifications", r"^/[a-z]{2}/productalert/unsubscribe/email/product/[0-9]+/?$"),
        ("support | Support Contact and Information", r"^/(pages/contact|[a-z]{2}/(food-safety|clothing-returns))/?$"),
        ("storelocator | Business and Wholesale", r"^/(business|[a-z]{2}/wholesale)/?$"),
        ("legal | Terms Conditions & Privacy Policy", r"^/[a-z]{2}/(tc-exclusions|offer-terms|handelsbetingelser|impressum|privacy-policy|sitemap)(\.html)?/?$"),
        ("other | Other Pages", r".*"),
    ),
    "sunstargum.com": (
        ("homepage | Sunstargum Homepage", r"^/[a-z]{2}-[a-z]{2}/?$"),
        ("productdetail | Product Detail Page", r"^/[a-z]{2}-[a-z]{2}/(products|produkte|produkter|productos|produktai|produkti|produkty|producten|tuotteet|prodotti|produtos|soins-et-produits-dentaires|proionta)/(tandpastas|limpieza-interdental|colutorios|dantu-sepeteliai|hilos-dentales|product-page|zahnbuersten|interdentaire|szczoteczki-do-zebow|cepillos-de-dientes|tandborstar|dentifricos|tabletten|mellemrumsrengoring|mellemrumsrengoering|interdental-cleaners|toothpastes|dentifices|mundspuelungen|mundskoelj|munskoelj|enjuagues-y-geles-bucales|hammaslangat|hammastahnat|hammasharjat|suuvedet|.+)/.+\.html$"),
        ("productlistpage | All Products", r"^/[a-z]{2}-[a-z]{2}/(products|produkte|produkter|productos|produktai|produkti|produkty|producten|tuotteet|prodotti|produtos|soins-et-produits-dentaires|proionta)\.html$"),
        ("productlistpage | Product Category Pages", r"^/[a-z]{2}-[a-z]{2}/(products|produkte|produkter|productos|produktai|prodotti|produtos|soins-et-produits-dentaires|tuotteet)/(tandpastas|colutorios|dantu-sepeteliai|gel-e-spray|hammastahnat|suuvedet|.+)(\.html)?$"),
        ("landingpage | Campaign Landing Pages", r"^/[a-z]{2}-[a-z]{2}/(kampagnen|campaigns|campagnes|campanas|kampanie|campagne)/[a-z0-9\-]+\.html$"),
        ("about | About", r"^/[a-z]{2}-[a-z]{2}/(about|about-us|company|who-we-are|chi-siamo|sobre-nosotros|uber-uns|om-os|om-oss|quem-somos|qui-sommes-nous|over-ons|o-nas)\.html$"),
        ("support | Support and Help", r"^/[a-z]{2}-[a-z]{2}/(?:(support|faq|help|assistance|contact-us|customer-service|quienes-somos|uber-uns|om-os|om-oss|quem-somos|qui-sommes-nous|over-ons|o-nas)(/.*)?|.*/(faq|frequently-asked-questions)\.html)$"),
        ("support | Contact", r"^/[a-z]{2}-[a-z]{2}/(?:(contact|contact-us|contactenos|contactanos|ota-yhteytta|neem-contact-met-ons-op|neem-contact)\.html|(sobre-nosotros|quienes-somos)/(contactanos|contact-us|gum-contactanos)\.html)$"),
        ("storelocator | Where to Buy", r"^/[a-z]{2}-[a-z]{2}/(store-locator|find-a-store|ou-trouver-nos-produits|where-to-buy|ou-acheter-nos-produits|donde-comprar|pou-na-agorasete|kopstallen|sklepy-internetowe|haendlersuche|forhandlere|war-te-koop|waar-te-koop|dove-comprare|mista-voin-ostaa-tuotteita|onde-comprar|kjop-her)(\.html)?(/.+)?$"),
        ("contentpage | Oral Health Content", r"^/[a-z]{2}-[a-z]{2}/(oral-health|salute-orale|sante-bucco-dentaire|mundgesundheit|munnhelse|salud-oral|lexique|glosario-oral|zdrowie-jamy-ustnej|munhalsa|suun-terveys|mond-gezondheid|oralhelse|saude-bucal|stomatiki-ygeia)(\.html)?(/.+)?$"),
        ("legal | Legal and Privacy", r"^/[a-z]{2}-[a-z]{2}/(privacy|terms|cookie|legal|rechtlich)(/.*)?$"),
        ("other | Other Pages", r".*"),
    ),
    "wilson.com": (
        ("homepage | Homepage", r"^(/([a-z]{2}-[a-z]{2}))?/?$"),
        ("productdetail | Product Detail Pages", r"^(/([a-z]{2}-[a-z]{2}))?/product/[a-z0-9\-]+$"),
        ("productlistpage | Category Pages", r"^(/([a-z]{2}-[a-z]{2}))?/(tennis|baseball|softball|golf|basketball|custom|sportswear|accessories|gloves|footwear|sale|apparel|bags|protective|equipment|deals|football|volleyball|pickleball|padel|fastpitch|shoes|specialty-shops|official-partnerships)(/|$)"),
        ("search | Search Results", r"^(/([a-z]{2}-[a-z]{2}))?/search(\?.*)?$"),
        ("checkout | Checkout Pages", r"^(/([a-z]{2}-[a-z]{2}))?/checkout(/|$)"),
        ("accountandorders | Login / Account / Wishlist / Order Pages", r"^(/([a-z]{2}-[a-z]{2}))?/(login|account|register|customer|wishlist|d2x|sales)(/|$|/.*)"),
        ("blog | Blog Articles", r"^(/([a-z]{2}-[a-z]{2}))?/blog/.+$"),
        ("blog | Blog Homepage", r"^(/([a-z]{2}-[a-z]{2}))?/blog(/|$)"),
        ("support | Support / Help / Warranty", r"^(/([a-z]{2}-[a-z]{2}))?/(support|warranty|contact|returns|faqs|size-guide|explore/help(/.*)?)(/|$)"),
        ("legal | Legal / Terms / Privacy", r"^(/([a-z]{2}-[a-z]{2}))?/(terms|privacy|cookie-policy|accessibility|legal-notices|explore/terms-and-conditions|explore/legal)(/|$)"),
        ("about | About / Brand / Company Info", r"^(/([a-z]{2}-[a-z]{2}))?/(about|careers|store-locator|explore/(about-us|careers|sportswear/our-stores|first-responders-discount|healthcare-worker-discount|tennis/wilson-athletes|football/ada-ohio-factory))(/|$)"),
        ("landingpage | Promo / Campaign / Landing Pages", r"^(/([a-z]{2}-[a-z]{2}))?/(customize|custom-builder|landing/[a-z0-9\-]+|explore/basketball/airless-prototype|explore/forms/.*|explore/shoes/.*|explore/sportswear/lookbook)(/|$)"),
        ("contentpage | Content Pages", r"^(/([a-z]{2}-[a-z]{2}))?/(technology|team-dealers|partnerships|ambassadors|history|giftcard/balance)(/|$)"),
        ("404 | 404 Not Found", r"^(/([a-z]{2}-[a-z]{2}))?/404(/|$)"),
        ("other | Other Pages", r".*"),
    ),
}


def site_domain(base_url: Optional[str]) -> Optional[str]:
    """https://www.wilson.com/en-us -> wilson.com"""
    if not base_url:
        return None
    try:
        hostname = urlparse(base_url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname[4:] if hostname.startswith("www.") else hostname


def normalize_rules(raw: Optional[Iterable[Any]]) -> Tuple[PageTypeRule, ...]:
    """Accepts [{"name": ..., "pattern": ...}] or [(name, pattern)]; entries missing either part are skipped."""
    rules = []
    for item in raw or ():
        if isinstance(item, dict):
            name, pattern = item.get("name"), item.get("pattern")
        else:
            try:
                name, pattern = item
            except (TypeError, ValueError):
                continue
        if name and pattern:
            rules.append((str(name), str(pattern)))
    return tuple(rules)


def page_type_rules(base_url: Optional[str], site_rules: Optional[Sequence[PageTypeRule]] = None) -> Tuple[PageTypeRule, ...]:
    if site_rules:
        return tuple(site_rules)
    return PAGE_TYPE_RULES.get(site_domain(base_url), ())


def classify_path(path: str, rules: Sequence[PageTypeRule]) -> str:
    for name, pattern in rules:
        if re.search(pattern, path):
            return name
    return OTHER_PAGE_TYPE
