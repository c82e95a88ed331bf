# chips/earlgrey.py
from components.node import Node
from components.peripherals import (
    Aes, AlertHandler, DefaultPeripherals, Flash, GpioPin, Hmac, I2c, Pattgen, PeripheralKind,
    Rng, Spi, SystemResetController, Timer, Uart,
)
from components.platform import Chip, DefaultSchedulerTimer, MemoryProtection

PERIPHERALS_TYPE = (
    "earlgrey::chip::EarlGreyDefaultPeripherals<'static, ChipConfig, crate::pinmux_layout::BoardPinmuxLayout>"
)

CHIP_TYPE = (
    "earlgrey::chip::EarlGrey<'static, "
    "{ <earlgrey::epmp::EPMPDebugEnable as earlgrey::epmp::EPMPDebugConfig>::TOR_USER_REGIONS }, "
    f"{PERIPHERALS_TYPE}, ChipConfig, crate::pinmux_layout::BoardPinmuxLayout, "
    "earlgrey::epmp::EarlGreyEPMP<{ EPMP_HANDOVER_CONFIG_CHECK }, earlgrey::epmp::EPMPDebugEnable>>"
)

EPMP_INIT = (
    "earlgrey::epmp::EarlGreyEPMP::new_debug("
    "earlgrey::epmp::FlashRegion(rv32i::pmp::NAPOTRegionSpec::new("
    "core::ptr::addr_of!(_sflash), "
    "core::ptr::addr_of!(_eflash) as usize - core::ptr::addr_of!(_sflash) as usize).unwrap()), "
    "earlgrey::epmp::RAMRegion(rv32i::pmp::NAPOTRegionSpec::new("
    "core::ptr::addr_of!(_ssram), "
    "core::ptr::addr_of!(_esram) as usize - core::ptr::addr_of!(_ssram) as usize).unwrap()), "
    "earlgrey::epmp::MMIORegion(rv32i::pmp::NAPOTRegionSpec::new(0x40000000 as *const u8, 0x10000000).unwrap()), "
    "earlgrey::epmp::KernelTextRegion(rv32i::pmp::TORRegionSpec::new("
    "core::ptr::addr_of!(_stext), core::ptr::addr_of!(_etext)).unwrap()), "
    "earlgrey::epmp::RVDMRegion(rv32i::pmp::NAPOTRegionSpec::new(0x00010000 as *const u8, 0x00001000).unwrap()))"
    ".unwrap()"
)


class FlashMemoryProtectionConfiguration(Node):
    def __init__(self):
        super().__init__(
            "flash_memory_protection_configuration",
            "earlgrey::flash_ctrl::FlashMemoryProtectionConfiguration",
        )

    def init_expr(self):
        return "earlgrey::flash_ctrl::FlashMemoryProtectionConfiguration::new()"


class EarlGrey(Chip):
    """OpenTitan EarlGrey (lowRISC), as configured on the CW310 board."""
    name = "earlgrey"

    def __init__(self, gpio_pins=8):
        catalog = {
            PeripheralKind.UART: [
                Uart("uart0", "earlgrey::uart::Uart<'static>",
                     "earlgrey::uart::Uart::new(earlgrey::uart::UART0_BASE, CHIP_FREQ)"),
            ],
            PeripheralKind.TIMER: [
                Timer("rv_timer", "earlgrey::timer::RvTimer<'static, ChipConfig>",
                      "earlgrey::timer::RvTimer::new()", frequency=10_000_000),
            ],
            PeripheralKind.GPIO: [
                GpioPin(f"gpio_pin{i}", "earlgrey::gpio::GpioPin<'static, earlgrey::pinmux::PadConfig>",
                        f"earlgrey::gpio::GpioPin::new(earlgrey::gpio::GPIO_BASE, earlgrey::pinmux::PadConfig::Output({i}), {i})",
                        index=i)
                for i in range(gpio_pins)
            ],
            PeripheralKind.SPI: [
                Spi("spi_host0", "lowrisc::spi_host::SpiHost<'static>",
                    "lowrisc::spi_host::SpiHost::new(earlgrey::spi_host::SPIHOST0_BASE, CHIP_FREQ)"),
            ],
            PeripheralKind.I2C: [
                I2c("i2c0", "lowrisc::i2c::I2c<'static>",
                    "lowrisc::i2c::I2c::new(earlgrey::i2c::I2C0_BASE, (1 * 1000 * 1000) / CHIP_FREQ)"),
            ],
            PeripheralKind.FLASH: [
                Flash("flash_ctrl0", "lowrisc::flash_ctrl::FlashCtrl<'static>",
                      "lowrisc::flash_ctrl::FlashCtrl::new(earlgrey::flash_ctrl::FLASH_CTRL_BASE, "
                      "lowrisc::flash_ctrl::FlashRegion::REGION0)",
                      page_type="lowrisc::flash_ctrl::LowRiscPage", page_size=2048, pages_per_bank=256),
            ],
            PeripheralKind.RNG: [
                Rng("csrng0", "lowrisc::csrng::CsRng<'static>",
                    "lowrisc::csrng::CsRng::new(earlgrey::csrng::CSRNG_BASE)"),
            ],
            PeripheralKind.HMAC: [
                Hmac("hmac0", "lowrisc::hmac::Hmac<'static>", "lowrisc::hmac::Hmac::new(earlgrey::hmac::HMAC0_BASE)"),
            ],
            PeripheralKind.AES: [
                Aes("aes0", "earlgrey::aes::Aes<'static>", "earlgrey::aes::Aes::new()"),
            ],
            PeripheralKind.PATTGEN: [
                Pattgen("pattgen0", "lowrisc::pattgen::PattGen<'static>",
                        "lowrisc::pattgen::PattGen::new(earlgrey::pattgen::PATTGEN_BASE)"),
            ],
            PeripheralKind.SYSTEM_RESET_CONTROLLER: [
                SystemResetController(
                    "sysrst_ctrl0", "lowrisc::sysrst_ctrl::SysRstCtr<'static>",
                    "lowrisc::sysrst_ctrl::SysRstCtr::new(earlgrey::sysrst_ctrl::SYSRST_CTRL_BASE)"),
            ],
            PeripheralKind.ALERT_HANDLER: [
                AlertHandler("alert_handler0", "earlgrey::alert_handler::AlertHandler",
                             "earlgrey::alert_handler::AlertHandler::new()",
                             setup="earlgrey::alert_handler::AlertHandler::enable_interrupts(alert_handler0);"),
            ],
        }
        flash_protection = FlashMemoryProtectionConfiguration()
        peripherals = DefaultPeripherals(
            PERIPHERALS_TYPE,
            "earlgrey::chip::EarlGreyDefaultPeripherals::new",
            catalog,
            extra=[flash_protection],
            chip_name=self.name,
        )
        epmp = MemoryProtection(
            "earlgrey_epmp",
            "earlgrey::epmp::EarlGreyEPMP<{ EPMP_HANDOVER_CONFIG_CHECK }, earlgrey::epmp::EPMPDebugEnable>",
            EPMP_INIT,
        )
        super().__init__(
            CHIP_TYPE,
            peripherals,
            epmp,
            f"earlgrey::chip::EarlGrey::new({peripherals.identifier}, {epmp.identifier})",
            systick=DefaultSchedulerTimer(),
        )

    def before_boot(self):
        return "earlgrey::chip::configure_trap_handler();"
